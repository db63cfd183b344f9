"""Pre-flight checks run before anything on the host is changed."""

import logging
from typing import Callable, List, Optional

from kvm_deploy.config import RunConfig, Settings
from kvm_deploy.exceptions import CommandError, PreconditionFailed, UserAborted
from kvm_deploy.host import VENDOR_MODULES, HostProbe
from kvm_deploy.medium import FilesystemMedium
from kvm_deploy.network import NetworkProvisioner

logger = logging.getLogger(__name__)

Prompt = Callable[[str], bool]

HYPERVISOR_COMMANDS = ["virsh", "virt-install", "qemu-img"]


class EnvironmentValidator:
    """Gates the run on hypervisor tools, KVM support, bridge and privileges."""

    def __init__(
        self,
        settings: Settings,
        run_config: RunConfig,
        host: HostProbe,
        medium: FilesystemMedium,
        network: NetworkProvisioner,
        prompt: Prompt,
    ) -> None:
        self.settings = settings
        self.run_config = run_config
        self.host = host
        self.medium = medium
        self.network = network
        self.prompt = prompt

    def check_commands(self) -> None:
        missing = [c for c in HYPERVISOR_COMMANDS + self.medium.required_commands if not self.host.has_command(c)]
        if missing:
            raise PreconditionFailed(f"Required commands not found: {', '.join(missing)}")

    def check_kvm(self) -> None:
        """KVM module loaded, plus the vendor module matching the host CPU."""
        modules = self.host.loaded_modules()
        if "kvm" not in modules:
            raise PreconditionFailed("KVM module not loaded")

        vendor = self.host.cpu_vendor()
        vendor_module: Optional[str] = VENDOR_MODULES.get(vendor or "")
        if vendor_module is None:
            logger.warning(f"Unrecognized CPU vendor {vendor!r}, skipping vendor module check")
        elif vendor_module not in modules:
            raise PreconditionFailed(f"{vendor_module} not loaded")

    def check_bridge(self) -> None:
        if not self.host.bridge_exists(self.settings.linux_bridge):
            raise PreconditionFailed(f"Bridge '{self.settings.linux_bridge}' not found")

    def check_privileges(self) -> None:
        """Loop mounting the config medium needs root; checked before any change."""
        if self.medium.requires_privilege and not self.host.is_root():
            raise PreconditionFailed(
                "Must run as root to build config drives "
                "(or set KVM_DEPLOY_MEDIUM_BACKEND=mtools)"
            )

    def check_stp(self) -> None:
        """Warn about STP on the bridge and ask the operator unless forced."""
        bridge = self.settings.linux_bridge
        logger.info(f"Checking STP settings on '{bridge}'...")
        if not self.host.stp_enabled(bridge):
            return
        logger.warning("STP is enabled - may delay VM networking.")
        if self.run_config.force:
            logger.info("Force mode active, continuing.")
            return
        if not self.prompt("Continue anyway?"):
            raise UserAborted("Aborted due to STP setting")

    def report_firewall(self) -> None:
        summary = self.host.firewall_summary()
        if summary is None:
            return
        logger.info("Host firewall configuration:")
        for line in summary.splitlines():
            if line.strip():
                logger.info(line.rstrip())

    def _run_check(self, name: str, check: Callable[[], None]) -> None:
        try:
            check()
        except CommandError as e:
            raise PreconditionFailed(f"Host check '{name}' could not run: {e}") from e

    def validate(self) -> List[str]:
        """
        Run every check in order.

        The virtual network is created here when missing, which is the only
        mutation performed before deployment starts.

        Returns:
            Names of the checks that passed.

        Raises:
            PreconditionFailed: On the first failing check, including a host
                tool that is missing or times out.
            NetworkProvisioningFailed: If the network cannot be created.
            UserAborted: If the operator declines the STP prompt.
        """
        logger.info("Checking KVM environment...")
        passed = []
        for name, check in (
            ("commands", self.check_commands),
            ("kvm", self.check_kvm),
            ("bridge", self.check_bridge),
            ("privileges", self.check_privileges),
        ):
            self._run_check(name, check)
            passed.append(name)

        self.network.ensure()
        passed.append("network")
        logger.info("KVM environment check passed")

        self._run_check("stp", self.check_stp)
        passed.append("stp")
        self._run_check("firewall", self.report_firewall)
        return passed

    def validate_for_cleanup(self) -> None:
        """Cleanup only talks to libvirt, so only ``virsh`` is required."""
        if not self.host.has_command("virsh"):
            raise PreconditionFailed("Required commands not found: virsh")
