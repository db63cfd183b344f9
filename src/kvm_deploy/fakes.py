"""
In-memory collaborators for exercising the deployment workflow without a
virtualization host. Used by the test suite.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from kvm_deploy.exceptions import CommandError
from kvm_deploy.host import HostProbe
from kvm_deploy.hypervisor import HypervisorClient, InstallRequest
from kvm_deploy.medium import FilesystemMedium, MIB
from kvm_deploy.models import DomainState


@dataclass
class FakeDomain:
    name: str
    state: DomainState = DomainState.RUNNING
    display: Optional[int] = None
    request: Optional[InstallRequest] = None


@dataclass
class FakeNetwork:
    xml: str
    autostart: bool = False
    active: bool = False


class FakeHypervisor(HypervisorClient):
    """
    Hypervisor kept in dictionaries.

    ``failures`` maps an operation name (``install_domain``, ``net-start``...)
    to the set of object names it should fail for; ``"*"`` fails every name.
    """

    def __init__(self) -> None:
        self.networks: Dict[str, FakeNetwork] = {}
        self.domains: Dict[str, FakeDomain] = {}
        self.volumes: Dict[Path, int] = {}
        self.failures: Dict[str, Set[str]] = {}
        self.calls: List[Tuple[str, str]] = []
        self._next_display = 0

    def fail(self, operation: str, name: str = "*") -> None:
        self.failures.setdefault(operation, set()).add(name)

    def _record(self, operation: str, name: str) -> None:
        self.calls.append((operation, name))
        targets = self.failures.get(operation, set())
        if name in targets or "*" in targets:
            raise CommandError(f"{operation} {name} failed", return_code=1)

    def add_domain(self, name: str, state: DomainState = DomainState.RUNNING, display: Optional[int] = None) -> None:
        self.domains[name] = FakeDomain(name=name, state=state, display=display)

    # Networks

    def network_info(self, name: str) -> Optional[str]:
        net = self.networks.get(name)
        if net is None:
            return None
        return (
            f"Name:           {name}\n"
            f"Active:         {'yes' if net.active else 'no'}\n"
            f"Autostart:      {'yes' if net.autostart else 'no'}\n"
        )

    def define_network(self, xml: str) -> None:
        name = xml.split("<name>", 1)[1].split("</name>", 1)[0]
        self._record("net-define", name)
        self.networks[name] = FakeNetwork(xml=xml)

    def autostart_network(self, name: str) -> None:
        self._record("net-autostart", name)
        self.networks[name].autostart = True

    def start_network(self, name: str) -> None:
        self._record("net-start", name)
        self.networks[name].active = True

    # Domains

    def domain_exists(self, name: str) -> bool:
        return name in self.domains

    def domain_state(self, name: str) -> DomainState:
        domain = self.domains.get(name)
        return domain.state if domain else DomainState.UNKNOWN

    def destroy_domain(self, name: str) -> None:
        self._record("destroy", name)
        self.domains[name].state = DomainState.SHUT_OFF

    def undefine_domain(self, name: str) -> None:
        self._record("undefine", name)
        if self.domains[name].state is DomainState.RUNNING:
            raise CommandError(f"Requested operation is not valid: domain '{name}' is running", return_code=1)
        del self.domains[name]

    def list_domains(self) -> List[str]:
        return list(self.domains)

    def list_running_domains(self) -> List[str]:
        return [d.name for d in self.domains.values() if d.state is DomainState.RUNNING]

    def inventory(self) -> str:
        lines = [" Id   Name   State", "-" * 30]
        for idx, domain in enumerate(self.domains.values(), start=1):
            lines.append(f" {idx}   {domain.name}   {domain.state.value}")
        return "\n".join(lines)

    def vnc_display(self, name: str) -> Optional[int]:
        self._record("vncdisplay", name)
        domain = self.domains.get(name)
        return domain.display if domain else None

    def create_volume(self, path: Path, size_gib: int) -> None:
        self._record("create_volume", str(path))
        Path(path).touch()
        self.volumes[Path(path)] = size_gib

    def install_domain(self, request: InstallRequest) -> None:
        self._record("install_domain", request.name)
        self.domains[request.name] = FakeDomain(
            name=request.name,
            state=DomainState.RUNNING,
            display=self._next_display,
            request=request,
        )
        self._next_display += 1


class FakeMedium(FilesystemMedium):
    """Records medium contents instead of formatting an image."""

    def __init__(self, requires_privilege: bool = False) -> None:
        self.requires_privilege = requires_privilege
        self.images: Dict[Path, Dict[str, bytes]] = {}
        self.sizes: Dict[Path, int] = {}

    def build(self, image_path: Path, files: Dict[str, bytes], size_mib: int) -> None:
        Path(image_path).write_bytes(b"")
        self.images[Path(image_path)] = dict(files)
        self.sizes[Path(image_path)] = size_mib * MIB

    def contents(self, image_path: Path) -> Dict[str, bytes]:
        return self.images[Path(image_path)]


@dataclass
class FakeHostProbe(HostProbe):
    """Host probe answering from attributes."""

    commands: Set[str] = field(
        default_factory=lambda: {"virsh", "virt-install", "qemu-img", "mkfs.vfat", "mount", "umount", "mmd", "mcopy"}
    )
    modules: Set[str] = field(default_factory=lambda: {"kvm", "kvm_intel"})
    vendor: Optional[str] = "GenuineIntel"
    bridges: Set[str] = field(default_factory=lambda: {"br0"})
    stp: Optional[bool] = False
    root: bool = True
    firewall: Optional[str] = None

    def has_command(self, name: str) -> bool:
        return name in self.commands

    def is_root(self) -> bool:
        return self.root

    def loaded_modules(self) -> Set[str]:
        return set(self.modules)

    def cpu_vendor(self) -> Optional[str]:
        return self.vendor

    def bridge_exists(self, bridge: str) -> bool:
        return bridge in self.bridges

    def stp_enabled(self, bridge: str) -> Optional[bool]:
        return self.stp

    def firewall_summary(self) -> Optional[str]:
        return self.firewall
