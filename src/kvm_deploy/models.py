"""Data models for cluster deployment."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

VNC_BASE_PORT = 5900


class NodeRole(Enum):
    """Node role derived from the HA attribute."""

    CONTROL = "control"
    DATA = "data"


@dataclass(frozen=True)
class NodeSpec:
    """A single node entry from the cluster definition."""

    node_id: str
    hostname: str
    ha_mode: Optional[Any] = None

    @property
    def role(self) -> NodeRole:
        """Control node if ``ha_mode`` is present and non-null."""
        return NodeRole.CONTROL if self.ha_mode is not None else NodeRole.DATA


@dataclass(frozen=True)
class ClusterTopology:
    """Ordered, read-only view of the nodes in a cluster definition."""

    source: Path
    nodes: Dict[str, NodeSpec]

    @property
    def node_ids(self) -> List[str]:
        return list(self.nodes)

    @property
    def hostnames(self) -> List[str]:
        return [node.hostname for node in self.nodes.values()]

    def __iter__(self) -> Iterator[NodeSpec]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, node_id: str) -> NodeSpec:
        return self.nodes[node_id]


@dataclass(frozen=True)
class NodeSizing:
    """Resources assigned to a node VM."""

    vcpus: int
    memory_mib: int
    data_disk_gib: int


@dataclass(frozen=True)
class NodeWorkspace:
    """Per-node directory and the artifacts it owns."""

    hostname: str
    directory: Path
    topology_copy: Path
    base_image: Path
    config_medium: Path
    data_volume: Path


class DomainState(Enum):
    """libvirt domain states as reported by ``virsh domstate``."""

    RUNNING = "running"
    IDLE = "idle"
    PAUSED = "paused"
    IN_SHUTDOWN = "in shutdown"
    SHUT_OFF = "shut off"
    CRASHED = "crashed"
    PMSUSPENDED = "pmsuspended"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str) -> "DomainState":
        """Map ``virsh domstate`` output to a state."""
        value = raw.strip().lower()
        for state in cls:
            if state.value == value:
                return state
        return cls.UNKNOWN


@dataclass(frozen=True)
class DisplayEndpoint:
    """Remote display of a running VM."""

    hostname: str
    display: int

    @property
    def port(self) -> int:
        return VNC_BASE_PORT + self.display


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation pass."""

    found: List[str] = field(default_factory=list)
    destroyed: List[str] = field(default_factory=list)
    undefined: List[str] = field(default_factory=list)
    removed_workspaces: List[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not (self.undefined or self.removed_workspaces)


@dataclass
class DeploymentReport:
    """Summary of a deployment run."""

    provisioned: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    endpoints: List[DisplayEndpoint] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return not self.failures
