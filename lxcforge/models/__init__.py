"""Data models for lxcforge."""
from lxcforge.models.container import (
    ContainerSpec,
    ContainerStatus,
    NetworkConfig,
    ProvisioningResult,
)
from lxcforge.models.storage import DiskFormat, DiskSpec, StorageKind, StoragePool
from lxcforge.models.template import TemplateReference

__all__ = [
    'ContainerSpec',
    'ContainerStatus',
    'DiskFormat',
    'DiskSpec',
    'NetworkConfig',
    'ProvisioningResult',
    'StorageKind',
    'StoragePool',
    'TemplateReference',
]
