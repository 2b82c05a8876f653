"""lxcforge runtime configuration and fixed provisioning parameters."""
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

import yaml

from lxcforge.models.storage import GIB

# Fixed provisioning parameters, not user-configurable
DISK_SIZE_BYTES = 20 * GIB
MEMORY_MB = 2048
SWAP_MB = MEMORY_MB
HOSTNAME = "UnifiNetworkController"
MANAGEMENT_PORT = 8443
INTERFACE = "eth0"

CONFIG_PATHS = [
    "./lxcforge.yml",
    str(Path.home() / ".config" / "lxcforge.yml"),
    "/etc/lxcforge/lxcforge.yml",
]


@dataclass
class ForgeConfig:
    """Runtime configuration for a provisioning run.

    Attributes:
        template_storage: Storage holding downloaded templates (default: local)
        template_section: `pveam available` section searched (default: system)
        bridge: Bridge the DHCP interface is attached to (default: vmbr0)
        os_family: Template OS family (default: debian)
        os_version: Template OS version prefix (default: 10)
        setup_script: Local second-stage script pushed into the container
        setup_target: Path of the script inside the container
        kernel_modules: Modules loaded on the host before provisioning
    """

    template_storage: str = "local"
    template_section: str = "system"
    bridge: str = "vmbr0"
    os_family: str = "debian"
    os_version: str = "10"
    setup_script: str = "setup.sh"
    setup_target: str = "/setup.sh"
    kernel_modules: List[str] = field(default_factory=lambda: ["aufs", "overlay"])

    @classmethod
    def from_file(cls, path: str) -> "ForgeConfig":
        """Load a YAML file; unknown keys are ignored."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def apply_env(self) -> "ForgeConfig":
        """Override fields from LXCFORGE_* environment variables.

        Environment variables:
            LXCFORGE_TEMPLATE_STORAGE, LXCFORGE_TEMPLATE_SECTION, LXCFORGE_BRIDGE,
            LXCFORGE_OS_FAMILY, LXCFORGE_OS_VERSION, LXCFORGE_SETUP_SCRIPT,
            LXCFORGE_SETUP_TARGET, LXCFORGE_KERNEL_MODULES (comma separated)
        """
        for f in fields(self):
            value = os.getenv(f"LXCFORGE_{f.name.upper()}")
            if value is None:
                continue
            if f.name == "kernel_modules":
                setattr(self, f.name, [m.strip() for m in value.split(",") if m.strip()])
            else:
                setattr(self, f.name, value)
        return self

    @classmethod
    def load(cls, path: Optional[str] = None) -> "ForgeConfig":
        """Defaults, then the first config file found, then the environment."""
        config_file = find_config(path)
        config = cls.from_file(config_file) if config_file else cls()
        return config.apply_env()


def find_config(config_path: Optional[str] = None) -> Optional[str]:
    """Locate the active configuration file, if any."""
    if config_path:
        return config_path

    if env_config := os.environ.get("LXCFORGE_CONFIG"):
        return env_config

    for path in CONFIG_PATHS:
        if Path(path).exists():
            return path

    return None


# Global config instance (can be overridden)
_config: Optional[ForgeConfig] = None


def get_config() -> ForgeConfig:
    """Get the global configuration (loads it on first use)."""
    global _config
    if _config is None:
        _config = ForgeConfig.load()
    return _config


def set_config(config: Optional[ForgeConfig]):
    """Set the global configuration."""
    global _config
    _config = config
