"""Per-node workspace directories."""

import logging
import shutil
from pathlib import Path

from kvm_deploy.config import Settings
from kvm_deploy.exceptions import MalformedDefinition, MissingFile, WorkspaceWriteFailed
from kvm_deploy.models import ClusterTopology, NodeSpec, NodeWorkspace
from kvm_deploy.topology import write_annotated_copy

logger = logging.getLogger(__name__)


def workspace_for(settings: Settings, hostname: str) -> NodeWorkspace:
    """
    Paths of the workspace owned by ``hostname``; nothing is created.

    Raises:
        MalformedDefinition: If the directory would not sit directly inside
            ``work_dir``.
    """
    directory = Path(settings.work_dir) / hostname
    if directory.resolve().parent != Path(settings.work_dir).resolve():
        raise MalformedDefinition(f"Workspace for {hostname!r} escapes {settings.work_dir}")
    return NodeWorkspace(
        hostname=hostname,
        directory=directory,
        topology_copy=directory / settings.topology_filename,
        base_image=directory / Path(settings.appliance_image).name,
        config_medium=directory / settings.config_drive_image,
        data_volume=directory / settings.data_disk_name,
    )


class WorkspaceBuilder:
    """Creates the directory, annotated definition and base image for a node."""

    def __init__(self, settings: Settings, topology: ClusterTopology) -> None:
        self.settings = settings
        self.topology = topology

    def check_inputs(self) -> None:
        """Fail early if the appliance image is missing."""
        if not Path(self.settings.appliance_image).is_file():
            raise MissingFile(f"Appliance image missing: {self.settings.appliance_image}")

    def build(self, node: NodeSpec) -> NodeWorkspace:
        """
        Create or reuse the workspace for ``node``.

        Raises:
            WorkspaceWriteFailed: On any filesystem error. Callers treat this
                as fatal for the whole run.
        """
        workspace = workspace_for(self.settings, node.hostname)
        try:
            workspace.directory.mkdir(parents=True, exist_ok=True)
            write_annotated_copy(self.topology.source, workspace.topology_copy, node.node_id)
            logger.info(f"Prepared {workspace.topology_copy}")
            shutil.copyfile(self.settings.appliance_image, workspace.base_image)
            logger.info(f"Copied appliance image to {workspace.directory}/")
        except OSError as e:
            raise WorkspaceWriteFailed(f"Workspace {workspace.directory}: {e}") from e
        return workspace
