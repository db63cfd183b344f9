"""Read-only inspection of the virtualization host."""

import glob
import logging
import os
import re
from pathlib import Path
from typing import Optional, Set

from kvm_deploy.commands import run_command, which

logger = logging.getLogger(__name__)

PROC_MODULES = Path("/proc/modules")
PROC_CPUINFO = Path("/proc/cpuinfo")
SYS_CLASS_NET = Path("/sys/class/net")

# CPU vendor id -> KVM vendor module
VENDOR_MODULES = {
    "GenuineIntel": "kvm_intel",
    "AuthenticAMD": "kvm_amd",
}


class HostProbe:
    """Queries host state without changing it."""

    def __init__(
        self,
        proc_modules: Path = PROC_MODULES,
        proc_cpuinfo: Path = PROC_CPUINFO,
        sys_class_net: Path = SYS_CLASS_NET,
    ) -> None:
        self.proc_modules = proc_modules
        self.proc_cpuinfo = proc_cpuinfo
        self.sys_class_net = sys_class_net

    def has_command(self, name: str) -> bool:
        return which(name) is not None

    def is_root(self) -> bool:
        return os.geteuid() == 0

    def loaded_modules(self) -> Set[str]:
        """Names of loaded kernel modules."""
        try:
            text = self.proc_modules.read_text()
        except OSError as e:
            logger.warning(f"Cannot read {self.proc_modules}: {e}")
            return set()
        return {line.split()[0] for line in text.splitlines() if line.strip()}

    def cpu_vendor(self) -> Optional[str]:
        """CPU ``vendor_id`` from cpuinfo, or None when not reported."""
        try:
            text = self.proc_cpuinfo.read_text()
        except OSError as e:
            logger.warning(f"Cannot read {self.proc_cpuinfo}: {e}")
            return None
        match = re.search(r"^vendor_id\s*:\s*(\S+)", text, re.MULTILINE)
        return match.group(1) if match else None

    def bridge_exists(self, bridge: str) -> bool:
        result = run_command(["ip", "link", "show", bridge], check=False, echo=False)
        return result.ok

    def stp_enabled(self, bridge: str) -> Optional[bool]:
        """
        Whether spanning tree is enabled on ``bridge``.

        Asks NetworkManager first, then netplan, then the kernel bridge
        attributes. Returns None when no source gives an answer.
        """
        if self.has_command("nmcli"):
            result = run_command(
                ["nmcli", "-t", "-f", "bridge.stp,bridge.port-type", "connection", "show", bridge],
                check=False,
                echo=False,
            )
            if result.ok:
                fields = dict(
                    line.split(":", 1) for line in result.stdout.splitlines() if ":" in line
                )
                stp_raw = fields.get("bridge.stp") or "unknown"
                port_type = fields.get("bridge.port-type") or "unknown"
                logger.info(f"bridge.stp: {stp_raw}, port-type: {port_type}")
                stp = fields.get("bridge.stp", "").strip().lower()
                if stp:
                    return stp in ("yes", "true")

        if self.has_command("netplan"):
            for conf in sorted(glob.glob("/etc/netplan/*")):
                try:
                    text = Path(conf).read_text()
                except OSError:
                    continue
                match = re.search(r"^\s*stp:\s*\"?(\w+)\"?", text, re.MULTILINE)
                if match:
                    logger.info(f"bridge.stp: {match.group(1)}, port-type: (netplan)")
                    return match.group(1).lower() in ("yes", "true")

        state_file = self.sys_class_net / bridge / "bridge" / "stp_state"
        try:
            value = state_file.read_text().strip()
        except OSError:
            return None
        logger.info(f"bridge.stp: {value} (sysfs)")
        return value != "0"

    def firewall_summary(self) -> Optional[str]:
        """``firewall-cmd --list-all`` output when firewalld is active, else None."""
        if not self.has_command("firewall-cmd"):
            logger.info("firewalld not installed.")
            return None
        active = run_command(["systemctl", "is-active", "--quiet", "firewalld"], check=False, echo=False)
        if not active.ok:
            logger.info("firewalld inactive.")
            return None
        result = run_command(["firewall-cmd", "--list-all"], check=False, echo=False)
        return result.stdout
