"""Report defined VMs and the VNC ports of running ones."""

import logging
from typing import List

from kvm_deploy.exceptions import CommandError
from kvm_deploy.hypervisor import HypervisorClient
from kvm_deploy.models import DisplayEndpoint

logger = logging.getLogger(__name__)


class StatusReporter:
    """Observational only; problems are logged, never raised."""

    def __init__(self, hypervisor: HypervisorClient) -> None:
        self.hypervisor = hypervisor

    def log_inventory(self) -> None:
        try:
            inventory = self.hypervisor.inventory()
        except CommandError as e:
            logger.warning(f"Could not list VMs: {e}")
            return
        for line in inventory.splitlines():
            if line.strip():
                logger.info(line.rstrip())

    def display_endpoints(self) -> List[DisplayEndpoint]:
        """VNC endpoint for every running VM that has one."""
        try:
            running = self.hypervisor.list_running_domains()
        except CommandError as e:
            logger.warning(f"Could not list running VMs: {e}")
            return []

        logger.info("Active VNC sessions:")
        endpoints = []
        for name in running:
            try:
                display = self.hypervisor.vnc_display(name)
            except CommandError as e:
                logger.warning(f"  {name}: could not query display: {e}")
                continue
            if display is None:
                logger.warning(f"  {name}: no VNC display")
                continue
            endpoint = DisplayEndpoint(hostname=name, display=display)
            logger.info(f"  {name} -> VNC port: {endpoint.port} (display :{display})")
            endpoints.append(endpoint)
        return endpoints

    def report(self) -> List[DisplayEndpoint]:
        self.log_inventory()
        return self.display_endpoints()
