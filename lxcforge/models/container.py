"""Container configuration and runtime models."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from lxcforge.models.storage import DiskSpec
from lxcforge.models.template import TemplateReference


@dataclass
class NetworkConfig:
    """Single DHCP interface attached to a bridge."""
    name: str = "eth0"
    bridge: str = "vmbr0"
    ip: str = "dhcp"

    def to_option(self) -> str:
        """Render as a pct --net0 value."""
        return f"name={self.name},bridge={self.bridge},ip={self.ip}"


@dataclass
class ContainerSpec:
    """Everything `pct create` needs for one container."""
    vmid: int
    template: TemplateReference
    arch: str
    hostname: str
    disk: DiskSpec
    memory: int  # MB
    swap: int  # MB
    network: NetworkConfig = field(default_factory=NetworkConfig)
    features: Dict[str, int] = field(default_factory=lambda: {'nesting': 1})
    onboot: bool = True

    @property
    def ostype(self) -> str:
        return self.template.os_family

    @property
    def feature_option(self) -> str:
        return ','.join(f'{key}={int(value)}' for key, value in self.features.items())

    @property
    def rootfs_option(self) -> str:
        return f"{self.disk.volume_id},size={self.disk.size_option}"


@dataclass(frozen=True)
class ContainerStatus:
    """Host view of a guest id."""
    defined: bool
    running: bool = False

    @classmethod
    def absent(cls) -> "ContainerStatus":
        return cls(defined=False, running=False)


@dataclass
class ProvisioningResult:
    """Connection details reported after a successful run."""
    vmid: int
    hostname: str
    ip: str
    endpoints: List[str]
    description: str
    storage: Optional[str] = None
