"""
Remove VMs and workspaces belonging to a topology.

VMs are identified by hostname only, so the set to remove is recomputed
from the definition file every run. Running it before each deployment is
what makes re-deploying safe.
"""

import logging
import shutil
from typing import Callable, List

from kvm_deploy.config import RunConfig, Settings
from kvm_deploy.exceptions import CommandError, DeployError, UserAborted, WorkspaceWriteFailed
from kvm_deploy.hypervisor import HypervisorClient
from kvm_deploy.models import ClusterTopology, DomainState, ReconcileResult
from kvm_deploy.workspace import workspace_for

logger = logging.getLogger(__name__)


class LifecycleReconciler:
    """Stops, undefines and deletes everything matching the topology hostnames."""

    def __init__(
        self,
        settings: Settings,
        run_config: RunConfig,
        hypervisor: HypervisorClient,
        prompt: Callable[[str], bool],
    ) -> None:
        self.settings = settings
        self.run_config = run_config
        self.hypervisor = hypervisor
        self.prompt = prompt

    def existing_vms(self, topology: ClusterTopology) -> List[str]:
        found = []
        for hostname in topology.hostnames:
            if self.hypervisor.domain_exists(hostname):
                logger.info(f"  Found VM: {hostname}")
                found.append(hostname)
        return found

    def reconcile(self, topology: ClusterTopology) -> ReconcileResult:
        """
        Remove matching VMs and workspaces after a single confirmation.

        Raises:
            UserAborted: If the operator declines.
            DeployError: If libvirt refuses to stop or undefine a domain, or a
                hostname does not name a directory inside work_dir.
        """
        result = ReconcileResult()
        logger.info("Checking existing VMs...")
        result.found = self.existing_vms(topology)
        if not result.found:
            logger.info("No existing VMs.")
            return result

        if not self.run_config.force and not self.prompt("Destroy and undefine these VMs?"):
            raise UserAborted("Cleanup aborted.")

        for hostname in result.found:
            directory = workspace_for(self.settings, hostname).directory
            self._remove_domain(hostname, result)
            if directory.is_dir():
                try:
                    shutil.rmtree(directory)
                except OSError as e:
                    raise WorkspaceWriteFailed(f"Cannot remove {directory}: {e}") from e
                result.removed_workspaces.append(hostname)
                logger.info(f"Removed directory {directory}")
        return result

    def _remove_domain(self, hostname: str, result: ReconcileResult) -> None:
        try:
            if self.hypervisor.domain_state(hostname) is DomainState.RUNNING:
                logger.info(f"Destroying {hostname}...")
                self.hypervisor.destroy_domain(hostname)
                result.destroyed.append(hostname)
            self.hypervisor.undefine_domain(hostname)
            result.undefined.append(hostname)
        except CommandError as e:
            raise DeployError(f"Failed to remove VM {hostname}: {e}") from e
