"""Read the node list out of a cluster definition file."""

import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from kvm_deploy.exceptions import MalformedDefinition, MissingFile
from kvm_deploy.models import ClusterTopology, NodeSpec

logger = logging.getLogger(__name__)

NODES_KEY = "nodes"
HOSTNAME_KEY = "hostname"
HA_KEY = "ha_mode"
NODE_INDEX_KEY = "node_index"


def _read_document(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise MissingFile(f"Cluster definition not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            doc = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise MalformedDefinition(f"{path} is not valid YAML: {e}") from e
    if not isinstance(doc, dict):
        raise MalformedDefinition(f"{path} does not contain a mapping")
    return doc


def _valid_hostname(node_id: str, value: Any) -> str:
    hostname = "" if value is None else str(value).strip()
    if not hostname:
        raise MalformedDefinition(f"Node {node_id!r} has no hostname")
    # Hostnames double as workspace directory names under work_dir.
    if "/" in hostname or "\0" in hostname or hostname in (".", ".."):
        raise MalformedDefinition(f"Node {node_id!r} hostname {hostname!r} is not a plain name")
    return hostname


def load_topology(path: Union[str, Path]) -> ClusterTopology:
    """
    Parse the ``nodes`` mapping of a cluster definition.

    Node ids are the mapping keys, kept in file order. Each entry must have a
    non-empty ``hostname``; ``ha_mode`` selects the control sizing when
    present and non-null.

    Raises:
        MissingFile: If the file does not exist.
        MalformedDefinition: If there are no nodes, or a hostname is empty or
            is not a single path component.
    """
    path = Path(path)
    doc = _read_document(path)

    raw_nodes = doc.get(NODES_KEY)
    if not isinstance(raw_nodes, dict) or not raw_nodes:
        raise MalformedDefinition(f"No nodes defined in {path}")

    nodes: Dict[str, NodeSpec] = {}
    for key, entry in raw_nodes.items():
        node_id = str(key)
        if not isinstance(entry, dict):
            raise MalformedDefinition(f"Node {node_id!r} is not a mapping")
        nodes[node_id] = NodeSpec(
            node_id=node_id,
            hostname=_valid_hostname(node_id, entry.get(HOSTNAME_KEY)),
            ha_mode=entry.get(HA_KEY),
        )

    logger.debug(f"Loaded {len(nodes)} nodes from {path}")
    return ClusterTopology(source=path, nodes=nodes)


def write_annotated_copy(source: Path, destination: Path, node_id: str) -> None:
    """Copy ``source`` to ``destination`` with ``node_index`` set to ``node_id``."""
    doc = _read_document(source)
    doc[NODE_INDEX_KEY] = node_id
    with open(destination, "w", encoding="utf-8") as f:
        yaml.safe_dump(doc, f, sort_keys=False, default_flow_style=False)
