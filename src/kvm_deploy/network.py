"""Ensure the libvirt network bound to the host bridge exists."""

import logging

from kvm_deploy.exceptions import CommandError, NetworkProvisioningFailed
from kvm_deploy.hypervisor import HypervisorClient, bridge_network_xml

logger = logging.getLogger(__name__)


class NetworkProvisioner:
    """Idempotently creates a bridge-mode virtual network."""

    def __init__(self, hypervisor: HypervisorClient, network: str, bridge: str) -> None:
        self.hypervisor = hypervisor
        self.network = network
        self.bridge = bridge

    def ensure(self) -> bool:
        """
        Create, autostart and start the network unless it already exists.

        Returns:
            True if the network was created, False if it already existed.

        Raises:
            NetworkProvisioningFailed: If any step of the creation fails. The
                partially created network is left in place.
        """
        try:
            info = self.hypervisor.network_info(self.network)
        except CommandError as e:
            raise NetworkProvisioningFailed(f"Cannot query network '{self.network}': {e}") from e
        if info is not None:
            logger.info(f"Found Bridge: {self.network}")
            for line in info.splitlines():
                if line.strip():
                    logger.info(line.rstrip())
            return False

        logger.info(f"Creating KVM network '{self.network}' linked to '{self.bridge}'...")
        step = "define"
        try:
            self.hypervisor.define_network(bridge_network_xml(self.network, self.bridge))
            step = "autostart"
            self.hypervisor.autostart_network(self.network)
            step = "start"
            self.hypervisor.start_network(self.network)
        except CommandError as e:
            raise NetworkProvisioningFailed(
                f"Network '{self.network}' {step} failed: {e}. Manual cleanup may be required."
            ) from e
        return True
