"""
Config medium creation.

A config medium is a small FAT32 image attached to the guest as an extra
disk. The appliance picks up the node definition from it on first boot
when the marker file is present.
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Dict, Iterator, List, Optional

from kvm_deploy.commands import run_command
from kvm_deploy.config import Settings
from kvm_deploy.exceptions import CommandError, MediumBuildFailed
from kvm_deploy.models import NodeWorkspace

logger = logging.getLogger(__name__)

MIB = 1024 * 1024


def allocate_image(image_path: Path, size_mib: int) -> None:
    """Create (or reset) a sparse raw image of ``size_mib`` MiB, mode 0644."""
    with open(image_path, "wb") as f:
        f.truncate(size_mib * MIB)
    os.chmod(image_path, 0o644)


def format_fat32(image_path: Path, timeout: Optional[float] = None) -> None:
    run_command(["mkfs.vfat", "-F", "32", str(image_path)], timeout=timeout)


class FilesystemMedium(ABC):
    """Builds a FAT32 image holding a set of files."""

    requires_privilege = False
    required_commands: List[str] = []

    @abstractmethod
    def build(self, image_path: Path, files: Dict[str, bytes], size_mib: int) -> None:
        """
        Write ``files`` (relative POSIX path -> content) into a fresh image.

        Raises:
            MediumBuildFailed: If any step fails.
        """


class LoopMountMedium(FilesystemMedium):
    """Formats the image and populates it through a loop mount. Needs root."""

    requires_privilege = True
    required_commands = ["mkfs.vfat", "mount", "umount"]

    def __init__(self, mount_point: Path, timeout: Optional[float] = None) -> None:
        self.mount_point = Path(mount_point)
        self.timeout = timeout

    @contextmanager
    def mounted(self, image_path: Path) -> Iterator[Path]:
        """Loop mount ``image_path`` for the duration of the block."""
        self.mount_point.mkdir(parents=True, exist_ok=True)
        run_command(["mount", "-o", "loop", str(image_path), str(self.mount_point)], timeout=self.timeout)
        try:
            yield self.mount_point
        finally:
            run_command(["umount", str(self.mount_point)], timeout=self.timeout)

    def build(self, image_path: Path, files: Dict[str, bytes], size_mib: int) -> None:
        try:
            allocate_image(image_path, size_mib)
            format_fat32(image_path, self.timeout)
            with self.mounted(image_path) as root:
                for rel_path, content in files.items():
                    target = root / PurePosixPath(rel_path)
                    target.parent.mkdir(parents=True, exist_ok=True)
                    target.write_bytes(content)
        except (CommandError, OSError) as e:
            raise MediumBuildFailed(f"Config medium {image_path}: {e}") from e


class MtoolsMedium(FilesystemMedium):
    """Populates the image with mtools, no mount or root needed."""

    required_commands = ["mkfs.vfat", "mmd", "mcopy"]

    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout

    def build(self, image_path: Path, files: Dict[str, bytes], size_mib: int) -> None:
        try:
            allocate_image(image_path, size_mib)
            format_fat32(image_path, self.timeout)
            created = set()
            for rel_path, content in files.items():
                parts = PurePosixPath(rel_path).parts
                for depth in range(1, len(parts)):
                    directory = "/".join(parts[:depth])
                    if directory not in created:
                        run_command(["mmd", "-i", str(image_path), f"::/{directory}"], timeout=self.timeout)
                        created.add(directory)
                with tempfile.NamedTemporaryFile(delete=False) as tmp:
                    tmp.write(content)
                try:
                    run_command(
                        ["mcopy", "-o", "-i", str(image_path), tmp.name, f"::/{rel_path}"],
                        timeout=self.timeout,
                    )
                finally:
                    os.unlink(tmp.name)
        except (CommandError, OSError) as e:
            raise MediumBuildFailed(f"Config medium {image_path}: {e}") from e


def create_medium(settings: Settings) -> FilesystemMedium:
    """Pick the medium backend named by ``settings.medium_backend``."""
    backend = settings.medium_backend.lower()
    if backend == "loop":
        return LoopMountMedium(settings.mount_point, timeout=settings.command_timeout)
    if backend == "mtools":
        return MtoolsMedium(timeout=settings.command_timeout)
    raise ValueError(f"Unknown medium backend: {settings.medium_backend!r}")


class ConfigMediumBuilder:
    """Builds one config medium per node workspace."""

    def __init__(self, settings: Settings, medium: FilesystemMedium) -> None:
        self.settings = settings
        self.medium = medium

    def medium_files(self, workspace: NodeWorkspace) -> Dict[str, bytes]:
        """Marker file plus the annotated definition under the config directory."""
        definition_path = f"{self.settings.config_drive_dir}/{self.settings.topology_filename}"
        try:
            definition = workspace.topology_copy.read_bytes()
        except OSError as e:
            raise MediumBuildFailed(f"Cannot read {workspace.topology_copy}: {e}") from e
        return {
            self.settings.config_drive_marker: b"",
            definition_path: definition,
        }

    def build(self, workspace: NodeWorkspace) -> Path:
        files = self.medium_files(workspace)
        self.medium.build(workspace.config_medium, files, self.settings.config_drive_size_mib)
        logger.info(f"Created config drive for {workspace.hostname}")
        return workspace.config_medium
