"""Abstract interface to the virtualization host."""
from abc import ABC, abstractmethod
from typing import List, Sequence

from lxcforge.models import ContainerSpec, ContainerStatus, DiskFormat, StoragePool


class HostCapability(ABC):
    """Narrow set of host operations needed to provision one container.

    Every operation is synchronous. Failures are raised as
    ``HostCommandError``; callers decide which typed provisioning error
    they turn into.
    """

    # Storage

    @abstractmethod
    def list_storage_pools(self) -> List[StoragePool]:
        """Return every storage pool known to the host."""
        pass

    @abstractmethod
    def allocate_disk(
        self,
        storage_tag: str,
        vmid: int,
        name: str,
        size: str,
        disk_format: DiskFormat,
    ) -> None:
        """Allocate a volume named ``name`` owned by ``vmid``."""
        pass

    @abstractmethod
    def volume_path(self, volume_id: str) -> str:
        """Resolve a volume id to a filesystem path on the host."""
        pass

    @abstractmethod
    def make_filesystem(self, disk_path: str) -> None:
        """Create an ext4 filesystem on a raw volume."""
        pass

    @abstractmethod
    def list_volumes(self, storage_tag: str, vmid: int) -> List[str]:
        """Return volume ids on ``storage_tag`` owned by ``vmid``.

        Raises:
            VolumeListingUnsupported: if this storage does not track owners
        """
        pass

    @abstractmethod
    def free_volume(self, volume_id: str) -> None:
        """Release a volume."""
        pass

    # Identifiers and templates

    @abstractmethod
    def next_container_identifier(self) -> int:
        """Ask the cluster for the next free guest id."""
        pass

    @abstractmethod
    def refresh_template_index(self) -> None:
        pass

    @abstractmethod
    def list_available_templates(self, section: str = "system") -> List[str]:
        """Template file names offered by the remote index."""
        pass

    @abstractmethod
    def list_local_templates(self, storage: str) -> List[str]:
        """Template file names already present on ``storage``."""
        pass

    @abstractmethod
    def download_template(self, storage: str, name: str) -> None:
        pass

    # Host facts

    @abstractmethod
    def host_architecture(self) -> str:
        pass

    @abstractmethod
    def ensure_kernel_module(self, module: str) -> None:
        """Load ``module`` now and on every boot."""
        pass

    # Container lifecycle

    @abstractmethod
    def create_container(self, spec: ContainerSpec) -> None:
        pass

    @abstractmethod
    def mount(self, vmid: int) -> str:
        """Mount the container filesystem, returning the mount path."""
        pass

    @abstractmethod
    def sync_timezone(self, mount_path: str) -> None:
        """Point the mounted guest's localtime at the host's zone."""
        pass

    @abstractmethod
    def unmount(self, vmid: int) -> None:
        pass

    @abstractmethod
    def start(self, vmid: int) -> None:
        pass

    @abstractmethod
    def stop(self, vmid: int) -> None:
        pass

    @abstractmethod
    def destroy(self, vmid: int) -> None:
        """Destroy the container together with its attached volumes."""
        pass

    @abstractmethod
    def push_file(self, vmid: int, local_path: str, remote_path: str, mode: int) -> None:
        pass

    @abstractmethod
    def exec(self, vmid: int, command: Sequence[str]) -> str:
        """Run ``command`` inside the container and return its stdout."""
        pass

    @abstractmethod
    def query_interface_address(self, vmid: int, iface: str) -> str:
        pass

    @abstractmethod
    def set_description(self, vmid: int, text: str) -> None:
        pass

    @abstractmethod
    def status(self, vmid: int) -> ContainerStatus:
        pass
