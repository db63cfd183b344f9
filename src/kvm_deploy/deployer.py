#!/usr/bin/env python3
"""
src/kvm_deploy/deployer.py

Idempotent cluster deployment. Wires the components together in order:

1. Validate the host (tools, KVM, bridge, privileges, virtual network, STP)
2. Reconcile away VMs and workspaces left by a previous run
3. Per node, in definition order: workspace -> config medium -> VM
4. Report VNC endpoints of running VMs
"""

import logging
import time
from typing import Callable, Optional

from kvm_deploy.config import RunConfig, Settings
from kvm_deploy.exceptions import ProvisioningFailed
from kvm_deploy.host import HostProbe
from kvm_deploy.hypervisor import HypervisorClient, VirshClient
from kvm_deploy.medium import ConfigMediumBuilder, FilesystemMedium, create_medium
from kvm_deploy.models import ClusterTopology, DeploymentReport, ReconcileResult
from kvm_deploy.network import NetworkProvisioner
from kvm_deploy.provisioner import VMProvisioner
from kvm_deploy.reconciler import LifecycleReconciler
from kvm_deploy.status import StatusReporter
from kvm_deploy.topology import load_topology
from kvm_deploy.validator import EnvironmentValidator
from kvm_deploy.workspace import WorkspaceBuilder

logger = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    total = int(seconds)
    return f"{total}s ({total // 60}m {total % 60}s)"


class Deployer:
    """Runs a full deployment or a cleanup-only pass for one topology."""

    def __init__(
        self,
        settings: Settings,
        run_config: RunConfig,
        hypervisor: HypervisorClient,
        medium: FilesystemMedium,
        host: HostProbe,
        prompt: Callable[[str], bool],
    ) -> None:
        self.settings = settings
        self.run_config = run_config
        self.hypervisor = hypervisor
        self.medium = medium
        self.host = host
        self.prompt = prompt

        self.network = NetworkProvisioner(hypervisor, settings.kvm_network, settings.linux_bridge)
        self.validator = EnvironmentValidator(settings, run_config, host, medium, self.network, prompt)
        self.reconciler = LifecycleReconciler(settings, run_config, hypervisor, prompt)
        self.medium_builder = ConfigMediumBuilder(settings, medium)
        self.provisioner = VMProvisioner(settings, hypervisor)
        self.status = StatusReporter(hypervisor)

    @classmethod
    def from_settings(
        cls, settings: Settings, run_config: RunConfig, prompt: Callable[[str], bool]
    ) -> "Deployer":
        """Deployer driving the local libvirt host."""
        return cls(
            settings,
            run_config,
            hypervisor=VirshClient(timeout=settings.command_timeout),
            medium=create_medium(settings),
            host=HostProbe(),
            prompt=prompt,
        )

    def load(self) -> ClusterTopology:
        return load_topology(self.settings.installer_source)

    def cleanup(self, topology: Optional[ClusterTopology] = None) -> ReconcileResult:
        """Remove the topology's VMs and workspaces without deploying."""
        topology = topology or self.load()
        self.validator.validate_for_cleanup()
        result = self.reconciler.reconcile(topology)
        logger.info("Cleanup completed (no deployment executed).")
        return result

    def deploy(self, topology: Optional[ClusterTopology] = None) -> DeploymentReport:
        """
        Deploy every node of the topology from a clean slate.

        Workspace and config medium failures abort the run. A VM creation
        failure aborts too, unless ``run_config.isolate_failures`` is set, in
        which case it is recorded in the report and the next node proceeds.

        Raises:
            DeployError: Any fatal failure from the taxonomy.
        """
        start = time.monotonic()
        report = DeploymentReport()

        topology = topology or self.load()
        builder = WorkspaceBuilder(self.settings, topology)
        builder.check_inputs()

        self.validator.validate()
        self.reconciler.reconcile(topology)

        for node in topology:
            workspace = builder.build(node)
            self.medium_builder.build(workspace)
            try:
                self.provisioner.provision(node, workspace)
            except ProvisioningFailed as e:
                if not self.run_config.isolate_failures:
                    raise
                logger.error(f"Provisioning failed: {e}")
                report.failures[node.hostname] = str(e)
                continue
            report.provisioned.append(node.hostname)

        report.endpoints = self.status.report()
        report.elapsed_seconds = time.monotonic() - start
        logger.info(f"Total deployment time: {format_duration(report.elapsed_seconds)}")
        return report
