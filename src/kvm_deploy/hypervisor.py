"""
Hypervisor control interface.

``HypervisorClient`` is the seam between the deployment workflow and
libvirt. ``VirshClient`` drives the real host through ``virsh``,
``qemu-img`` and ``virt-install``; ``kvm_deploy.fakes.FakeHypervisor``
keeps everything in memory.
"""

import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from kvm_deploy.commands import CommandResult, run_command
from kvm_deploy.models import DomainState, NodeSizing


@dataclass(frozen=True)
class DiskSpec:
    path: Path
    format: str
    bus: str = "virtio"

    def to_arg(self) -> str:
        return f"path={self.path},format={self.format},bus={self.bus}"


@dataclass(frozen=True)
class InstallRequest:
    """Everything needed to import and start one domain."""

    name: str
    sizing: NodeSizing
    disks: List[DiskSpec]
    network: str
    os_variant: str
    cpu_model: str
    graphics: str
    console: str
    video: str
    extra_args: List[str] = field(default_factory=list)

    def to_virt_install_args(self) -> List[str]:
        """Build the ``virt-install`` argument vector."""
        args = [
            "virt-install",
            "--name", self.name,
            "--vcpus", str(self.sizing.vcpus),
            "--memory", str(self.sizing.memory_mib),
            "--cpu", self.cpu_model,
            "--os-variant", self.os_variant,
            "--import",
        ]
        for disk in self.disks:
            args += ["--disk", disk.to_arg()]
        args += [
            "--network", f"network={self.network},model=virtio",
            "--graphics", self.graphics,
            "--console", self.console,
            "--video", self.video,
            "--noautoconsole",
        ]
        return args + list(self.extra_args)


def bridge_network_xml(name: str, bridge: str) -> str:
    """libvirt network definition forwarding in bridge mode to ``bridge``."""
    return (
        "<network>\n"
        f"  <name>{name}</name>\n"
        "  <forward mode='bridge'/>\n"
        f"  <bridge name='{bridge}'/>\n"
        "</network>\n"
    )


class HypervisorClient(ABC):
    """Operations the deployment needs from the virtualization manager."""

    @abstractmethod
    def network_info(self, name: str) -> Optional[str]:
        """Info text for a virtual network, or None if it is not defined."""

    @abstractmethod
    def define_network(self, xml: str) -> None: ...

    @abstractmethod
    def autostart_network(self, name: str) -> None: ...

    @abstractmethod
    def start_network(self, name: str) -> None: ...

    @abstractmethod
    def domain_exists(self, name: str) -> bool: ...

    @abstractmethod
    def domain_state(self, name: str) -> DomainState: ...

    @abstractmethod
    def destroy_domain(self, name: str) -> None:
        """Hard stop a running domain."""

    @abstractmethod
    def undefine_domain(self, name: str) -> None: ...

    @abstractmethod
    def list_domains(self) -> List[str]:
        """Names of all defined domains."""

    @abstractmethod
    def list_running_domains(self) -> List[str]: ...

    @abstractmethod
    def inventory(self) -> str:
        """Human readable table of all domains and their state."""

    @abstractmethod
    def vnc_display(self, name: str) -> Optional[int]:
        """VNC display index of a running domain, or None."""

    @abstractmethod
    def create_volume(self, path: Path, size_gib: int) -> None:
        """Create a raw disk image of ``size_gib``."""

    @abstractmethod
    def install_domain(self, request: InstallRequest) -> None:
        """Define and start a domain from existing disks."""


class VirshClient(HypervisorClient):
    """libvirt client backed by the ``virsh`` command line."""

    def __init__(self, timeout: Optional[float] = None, uri: Optional[str] = None) -> None:
        self.timeout = timeout
        self.uri = uri

    def _virsh(self, *args: str, check: bool = True, echo: bool = True) -> CommandResult:
        base = ["virsh"] + (["-c", self.uri] if self.uri else [])
        return run_command(base + list(args), check=check, timeout=self.timeout, echo=echo)

    def network_info(self, name: str) -> Optional[str]:
        result = self._virsh("net-info", name, check=False, echo=False)
        return result.stdout if result.ok else None

    def define_network(self, xml: str) -> None:
        fd, tmp_path = tempfile.mkstemp(suffix=".xml")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(xml)
            self._virsh("net-define", tmp_path)
        finally:
            os.unlink(tmp_path)

    def autostart_network(self, name: str) -> None:
        self._virsh("net-autostart", name)

    def start_network(self, name: str) -> None:
        self._virsh("net-start", name)

    def domain_exists(self, name: str) -> bool:
        return self._virsh("dominfo", name, check=False, echo=False).ok

    def domain_state(self, name: str) -> DomainState:
        result = self._virsh("domstate", name, check=False, echo=False)
        if not result.ok:
            return DomainState.UNKNOWN
        return DomainState.parse(result.stdout)

    def destroy_domain(self, name: str) -> None:
        self._virsh("destroy", name)

    def undefine_domain(self, name: str) -> None:
        self._virsh("undefine", name)

    def list_domains(self) -> List[str]:
        result = self._virsh("list", "--all", "--name", echo=False)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def list_running_domains(self) -> List[str]:
        result = self._virsh("list", "--name", echo=False)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def inventory(self) -> str:
        return self._virsh("list", "--all", echo=False).stdout

    def vnc_display(self, name: str) -> Optional[int]:
        result = self._virsh("vncdisplay", name, check=False, echo=False)
        return parse_vnc_display(result.stdout) if result.ok else None

    def create_volume(self, path: Path, size_gib: int) -> None:
        run_command(["qemu-img", "create", "-f", "raw", str(path), f"{size_gib}G"], timeout=self.timeout)

    def install_domain(self, request: InstallRequest) -> None:
        run_command(request.to_virt_install_args(), timeout=self.timeout)


def parse_vnc_display(raw: str) -> Optional[int]:
    """
    Parse ``virsh vncdisplay`` output such as ``:3`` or ``127.0.0.1:3``.

    Returns None when no display index is present.
    """
    value = "".join(raw.split())
    if ":" not in value:
        return None
    index = value.rsplit(":", 1)[1]
    try:
        return int(index)
    except ValueError:
        return None

