"""In-memory host used by mock mode and the test suite."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from lxcforge.core.errors import HostCommandError, VolumeListingUnsupported
from lxcforge.core.logger import get_logger
from lxcforge.models import ContainerSpec, ContainerStatus, StorageKind, StoragePool
from lxcforge.models.storage import GIB
from lxcforge.services.proxmox.host.base import HostCapability

logger = get_logger(__name__)

DEFAULT_TEMPLATES = [
    'debian-10-standard_10.0-1_amd64.tar.gz',
    'debian-10-standard_10.7-1_amd64.tar.gz',
    'debian-10-standard_10.2-1_amd64.tar.gz',
    'debian-11-standard_11.7-1_amd64.tar.zst',
    'ubuntu-22.04-standard_22.04-1_amd64.tar.zst',
]


@dataclass
class MockContainer:
    vmid: int
    rootfs: str
    running: bool = False
    description: str = ''


@dataclass
class MockHost(HostCapability):
    """Simulated Proxmox host.

    Keeps containers and volumes in dictionaries so tests can check what
    is left behind after a run. ``fail_on`` maps an operation name to the
    error it should raise the next time it is called.
    """
    pools: List[StoragePool] = field(default_factory=list)
    available_templates: List[str] = field(default_factory=list)
    local_templates: Dict[str, Set[str]] = field(default_factory=dict)
    next_id: int = 100
    arch: str = 'amd64'
    ip: str = '192.168.1.50'
    fail_on: Dict[str, HostCommandError] = field(default_factory=dict)
    untracked_storages: Set[str] = field(default_factory=set)

    containers: Dict[int, MockContainer] = field(default_factory=dict)
    volumes: Dict[str, Tuple[str, int]] = field(default_factory=dict)
    mounted: Set[int] = field(default_factory=set)
    formatted: List[str] = field(default_factory=list)
    pushed: Dict[int, Dict[str, int]] = field(default_factory=dict)
    executed: List[Tuple[int, List[str]]] = field(default_factory=list)
    modules: Set[str] = field(default_factory=set)
    calls: List[str] = field(default_factory=list)

    @classmethod
    def with_defaults(cls) -> "MockHost":
        """Single 'local' dir pool with 50GB free and a few Debian templates."""
        return cls(
            pools=[StoragePool(tag='local', kind=StorageKind.DIR, free_bytes=50 * GIB)],
            available_templates=list(DEFAULT_TEMPLATES),
        )

    def fail(self, operation: str, returncode: int = 1, stderr: str = 'simulated failure'):
        """Make the next call to ``operation`` raise."""
        self.fail_on[operation] = HostCommandError([operation], returncode, stderr)

    def _call(self, operation: str, *args):
        self.calls.append(operation)
        logger.debug(f"MOCK: {operation}{args}")
        error = self.fail_on.pop(operation, None)
        if error is not None:
            raise error

    def volumes_for(self, storage_tag: str, vmid: int) -> List[str]:
        return [
            volid for volid, (tag, owner) in self.volumes.items()
            if tag == storage_tag and owner == vmid
        ]

    # Storage

    def list_storage_pools(self) -> List[StoragePool]:
        self._call('list_storage_pools')
        return list(self.pools)

    def allocate_disk(self, storage_tag, vmid, name, size, disk_format):
        self._call('allocate_disk', storage_tag, vmid, name, size, disk_format)
        pool = next((p for p in self.pools if p.tag == storage_tag), None)
        reference = f"{vmid}/" if pool and pool.kind in (StorageKind.DIR, StorageKind.NFS) else ''
        self.volumes[f"{storage_tag}:{reference}{name}"] = (storage_tag, vmid)

    def volume_path(self, volume_id: str) -> str:
        self._call('volume_path', volume_id)
        if volume_id not in self.volumes:
            raise HostCommandError(['pvesm', 'path', volume_id], 2, 'no such volume')
        _, name = volume_id.split(":", 1)
        return f"/var/lib/vz/images/{name}"

    def make_filesystem(self, disk_path: str) -> None:
        self._call('make_filesystem', disk_path)
        self.formatted.append(disk_path)

    def list_volumes(self, storage_tag: str, vmid: int) -> List[str]:
        self._call('list_volumes', storage_tag, vmid)
        if storage_tag in self.untracked_storages:
            raise VolumeListingUnsupported(f"Storage '{storage_tag}' does not track volumes")
        return self.volumes_for(storage_tag, vmid)

    def free_volume(self, volume_id: str) -> None:
        self._call('free_volume', volume_id)
        self.volumes.pop(volume_id, None)

    # Identifiers and templates

    def next_container_identifier(self) -> int:
        self._call('next_container_identifier')
        taken = set(self.containers) | {owner for _, owner in self.volumes.values()}
        while self.next_id in taken:
            self.next_id += 1
        vmid = self.next_id
        self.next_id += 1
        return vmid

    def refresh_template_index(self) -> None:
        self._call('refresh_template_index')

    def list_available_templates(self, section: str = 'system') -> List[str]:
        self._call('list_available_templates', section)
        return list(self.available_templates)

    def list_local_templates(self, storage: str) -> List[str]:
        self._call('list_local_templates', storage)
        return sorted(self.local_templates.get(storage, set()))

    def download_template(self, storage: str, name: str) -> None:
        self._call('download_template', storage, name)
        self.local_templates.setdefault(storage, set()).add(name)

    # Host facts

    def host_architecture(self) -> str:
        self._call('host_architecture')
        return self.arch

    def ensure_kernel_module(self, module: str) -> None:
        self._call('ensure_kernel_module', module)
        self.modules.add(module)

    # Container lifecycle

    def create_container(self, spec: ContainerSpec) -> None:
        self._call('create_container', spec.vmid)
        if spec.vmid in self.containers:
            raise HostCommandError(['pct', 'create', str(spec.vmid)], 255, 'CT already exists')
        self.containers[spec.vmid] = MockContainer(vmid=spec.vmid, rootfs=spec.disk.volume_id)

    def _container(self, vmid: int, operation: str) -> MockContainer:
        container = self.containers.get(vmid)
        if container is None:
            raise HostCommandError([operation, str(vmid)], 2, f"CT {vmid} does not exist")
        return container

    def mount(self, vmid: int) -> str:
        self._call('mount', vmid)
        self._container(vmid, 'mount')
        self.mounted.add(vmid)
        return f"/var/lib/lxc/{vmid}/rootfs"

    def sync_timezone(self, mount_path: str) -> None:
        self._call('sync_timezone', mount_path)

    def unmount(self, vmid: int) -> None:
        self._call('unmount', vmid)
        self.mounted.discard(vmid)

    def start(self, vmid: int) -> None:
        self._call('start', vmid)
        self._container(vmid, 'start').running = True

    def stop(self, vmid: int) -> None:
        self._call('stop', vmid)
        self._container(vmid, 'stop').running = False

    def destroy(self, vmid: int) -> None:
        self._call('destroy', vmid)
        container = self._container(vmid, 'destroy')
        if container.running:
            raise HostCommandError(['pct', 'destroy', str(vmid)], 255, 'CT is running')
        if vmid in self.mounted:
            raise HostCommandError(['pct', 'destroy', str(vmid)], 255, 'CT is mounted')
        del self.containers[vmid]
        for volid in [v for v, (_, owner) in self.volumes.items() if owner == vmid]:
            del self.volumes[volid]

    def push_file(self, vmid: int, local_path: str, remote_path: str, mode: int) -> None:
        self._call('push_file', vmid, local_path, remote_path, mode)
        self._container(vmid, 'push')
        self.pushed.setdefault(vmid, {})[remote_path] = mode

    def exec(self, vmid: int, command: Sequence[str]) -> str:
        self._call('exec', vmid, list(command))
        self._container(vmid, 'exec')
        self.executed.append((vmid, list(command)))
        return ''

    def query_interface_address(self, vmid: int, iface: str) -> str:
        self._call('query_interface_address', vmid, iface)
        self._container(vmid, 'exec')
        return self.ip

    def set_description(self, vmid: int, text: str) -> None:
        self._call('set_description', vmid)
        self._container(vmid, 'set').description = text

    def status(self, vmid: int) -> ContainerStatus:
        self._call('status', vmid)
        container = self.containers.get(vmid)
        if container is None:
            return ContainerStatus.absent()
        return ContainerStatus(defined=True, running=container.running)

    def find_container(self, vmid: int) -> Optional[MockContainer]:
        return self.containers.get(vmid)
