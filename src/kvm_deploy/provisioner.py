"""Create and start one VM per node."""

import logging

from kvm_deploy.config import Settings
from kvm_deploy.exceptions import CommandError, ProvisioningFailed
from kvm_deploy.hypervisor import DiskSpec, HypervisorClient, InstallRequest
from kvm_deploy.models import NodeRole, NodeSizing, NodeSpec, NodeWorkspace

logger = logging.getLogger(__name__)


def sizing_for(settings: Settings, node: NodeSpec) -> NodeSizing:
    """Control preset when the node carries ``ha_mode``, data preset otherwise."""
    if node.role is NodeRole.CONTROL:
        return settings.control_sizing
    return settings.data_sizing


class VMProvisioner:
    """Allocates the data volume and imports the domain."""

    def __init__(self, settings: Settings, hypervisor: HypervisorClient) -> None:
        self.settings = settings
        self.hypervisor = hypervisor

    def build_request(self, node: NodeSpec, workspace: NodeWorkspace, sizing: NodeSizing) -> InstallRequest:
        return InstallRequest(
            name=node.hostname,
            sizing=sizing,
            disks=[
                DiskSpec(workspace.base_image, "qcow2"),
                DiskSpec(workspace.config_medium, "raw"),
                DiskSpec(workspace.data_volume, "raw"),
            ],
            network=self.settings.kvm_network,
            os_variant=self.settings.os_variant,
            cpu_model=self.settings.cpu_model,
            graphics=self.settings.graphics,
            console=self.settings.console,
            video=self.settings.video,
        )

    def ensure_data_volume(self, workspace: NodeWorkspace, sizing: NodeSizing) -> bool:
        """Create the data volume unless it exists. Existing data is never truncated."""
        if workspace.data_volume.exists():
            logger.info(f"Reusing data volume {workspace.data_volume}")
            return False
        self.hypervisor.create_volume(workspace.data_volume, sizing.data_disk_gib)
        return True

    def provision(self, node: NodeSpec, workspace: NodeWorkspace) -> InstallRequest:
        """
        Import and start the VM for ``node``.

        Success means libvirt accepted the domain and began booting it; the
        guest consumes its config medium asynchronously afterwards.

        Raises:
            ProvisioningFailed: If volume creation or domain import fails.
        """
        sizing = sizing_for(self.settings, node)
        logger.info(
            f"Deploying {node.hostname} ({node.role.value}): {sizing.vcpus} vCPUs, "
            f"{sizing.memory_mib} MiB RAM, {sizing.data_disk_gib} GiB data disk"
        )
        request = self.build_request(node, workspace, sizing)
        try:
            self.ensure_data_volume(workspace, sizing)
            self.hypervisor.install_domain(request)
        except CommandError as e:
            raise ProvisioningFailed(node.hostname, str(e)) from e
        return request
