"""Configuration management for cluster deployment."""

from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kvm_deploy.models import NodeSizing


class Settings(BaseSettings):
    """Deployment settings loaded from environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="KVM_DEPLOY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Inputs
    installer_source: Path = Field(
        default=Path("./installer.yaml"), description="Cluster definition file"
    )
    appliance_image: Path = Field(
        default=Path("./hammerspace-5.1.40-449.qcow2"), description="Appliance base disk image"
    )
    work_dir: Path = Field(default=Path("."), description="Parent directory of node workspaces")
    topology_filename: str = Field(
        default="installer.yaml", description="Name of the per-node definition copy"
    )

    # Config medium
    config_drive_image: str = Field(default="config-drive.img", description="Config medium file name")
    config_drive_size_mib: int = Field(default=16, description="Config medium size in MiB")
    config_drive_marker: str = Field(
        default="COPY_TO_HAMMERSPACE", description="Marker file telling the appliance to consume the medium"
    )
    config_drive_dir: str = Field(default="etc", description="Directory holding the definition on the medium")
    mount_point: Path = Field(default=Path("/mnt/configdrive"), description="Loop mount point")
    medium_backend: str = Field(default="loop", description="Medium builder: 'loop' or 'mtools'")

    # Networking
    kvm_network: str = Field(default="bridge", description="libvirt network name")
    linux_bridge: str = Field(default="br0", description="Host bridge device")

    # Sizing presets
    control_vcpus: int = Field(default=8, description="vCPUs for control (HA) nodes")
    control_memory_mib: int = Field(default=16384, description="Memory for control nodes")
    control_data_disk_gib: int = Field(default=100, description="Data disk for control nodes")
    data_vcpus: int = Field(default=4, description="vCPUs for data nodes")
    data_memory_mib: int = Field(default=8192, description="Memory for data nodes")
    data_data_disk_gib: int = Field(default=50, description="Data disk for data nodes")
    data_disk_name: str = Field(default="data0.img", description="Data volume file name")

    # virt-install device classes
    os_variant: str = Field(default="centos8", description="virt-install --os-variant")
    cpu_model: str = Field(default="host-model,+topoext", description="virt-install --cpu")
    graphics: str = Field(default="vnc,listen=0.0.0.0", description="virt-install --graphics")
    console: str = Field(default="pty,target_type=serial", description="virt-install --console")
    video: str = Field(default="virtio", description="virt-install --video")

    command_timeout: int = Field(default=600, description="Timeout for external commands in seconds")

    @property
    def control_sizing(self) -> NodeSizing:
        """Sizing preset for nodes carrying the HA attribute."""
        return NodeSizing(
            vcpus=self.control_vcpus,
            memory_mib=self.control_memory_mib,
            data_disk_gib=self.control_data_disk_gib,
        )

    @property
    def data_sizing(self) -> NodeSizing:
        """Sizing preset for all other nodes."""
        return NodeSizing(
            vcpus=self.data_vcpus,
            memory_mib=self.data_memory_mib,
            data_disk_gib=self.data_data_disk_gib,
        )


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()


@dataclass(frozen=True)
class RunConfig:
    """Run-wide switches fixed at process start.

    Attributes:
        force: Unattended mode, every prompt is answered yes.
        cleanup_only: Reconcile existing VMs and stop before provisioning.
        isolate_failures: Keep provisioning remaining nodes when one fails.
    """

    force: bool = False
    cleanup_only: bool = False
    isolate_failures: bool = False
