"""Storage pool and disk models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet

GIB = 1024 ** 3

ROOTDIR_CONTENT = "rootdir"


class StorageKind(Enum):
    """Proxmox storage backend type."""
    DIR = "dir"
    NFS = "nfs"
    ZFSPOOL = "zfspool"
    OTHER = "other"

    @classmethod
    def from_type(cls, value: str) -> "StorageKind":
        """Map a `pvesm status` type column to a kind (unknown -> OTHER)."""
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class DiskFormat(Enum):
    """Volume format passed to `pvesm alloc`."""
    RAW = "raw"
    SUBVOL = "subvol"


def format_iec(size_bytes: int) -> str:
    """Format a byte count in IEC binary units with two decimals.

    Units carry no trailing ``B`` (``48.83G``), callers append it.
    """
    size = float(size_bytes)
    for unit in ['', 'K', 'M', 'G', 'T', 'P']:
        if abs(size) < 1024:
            return f"{size:.2f}{unit}"
        size /= 1024
    return f"{size:.2f}E"


@dataclass(frozen=True)
class StoragePool:
    """A storage location reported by the host."""
    tag: str
    kind: StorageKind
    free_bytes: int
    content: FrozenSet[str] = field(default_factory=lambda: frozenset({ROOTDIR_CONTENT}))

    @property
    def supports_rootdir(self) -> bool:
        """True if containers can keep their root filesystem here."""
        return ROOTDIR_CONTENT in self.content

    @property
    def free_human(self) -> str:
        return f"{format_iec(self.free_bytes)}B"


@dataclass(frozen=True)
class DiskSpec:
    """Root disk of a container, named after the storage kind.

    zfspool volumes are subvolumes managed by ZFS itself; dir and nfs
    volumes are raw image files living under a per-guest directory.
    """
    storage_tag: str
    vmid: int
    size_bytes: int
    kind: StorageKind

    @classmethod
    def for_pool(cls, pool: StoragePool, vmid: int, size_bytes: int) -> "DiskSpec":
        return cls(storage_tag=pool.tag, vmid=vmid, size_bytes=size_bytes, kind=pool.kind)

    @property
    def format(self) -> DiskFormat:
        if self.kind is StorageKind.ZFSPOOL:
            return DiskFormat.SUBVOL
        return DiskFormat.RAW

    @property
    def needs_filesystem(self) -> bool:
        """Raw images need an ext4 filesystem before the container can use them."""
        return self.format is DiskFormat.RAW

    @property
    def name(self) -> str:
        if self.kind is StorageKind.ZFSPOOL:
            return f"subvol-{self.vmid}-disk-0"
        if self.kind in (StorageKind.DIR, StorageKind.NFS):
            return f"vm-{self.vmid}-disk-0.raw"
        return f"vm-{self.vmid}-disk-0"

    @property
    def reference(self) -> str:
        """Path-like prefix of the volume name inside the storage."""
        if self.kind in (StorageKind.DIR, StorageKind.NFS):
            return f"{self.vmid}/"
        return ""

    @property
    def volume_id(self) -> str:
        """Full volume id (e.g. 'local:100/vm-100-disk-0.raw')."""
        return f"{self.storage_tag}:{self.reference}{self.name}"

    @property
    def size_option(self) -> str:
        """Size string understood by pvesm and pct (e.g. '20G')."""
        return f"{self.size_bytes // GIB}G"
