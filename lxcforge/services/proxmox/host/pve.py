"""Host capability bound to the Proxmox VE command-line tools."""
import os
import re
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from lxcforge.core.errors import HostCommandError, VolumeListingUnsupported
from lxcforge.core.logger import get_logger
from lxcforge.models import (
    ContainerSpec,
    ContainerStatus,
    DiskFormat,
    StorageKind,
    StoragePool,
)
from lxcforge.models.storage import ROOTDIR_CONTENT
from lxcforge.services.proxmox.host.base import HostCapability

logger = get_logger(__name__)

INET_RE = re.compile(r'inet\s+(\d{1,3}(?:\.\d{1,3}){3})/')

# stderr fragments pvesm prints when a plugin cannot list volumes
UNSUPPORTED_MARKERS = ('not supported', 'not implemented')


class PveHost(HostCapability):
    """Drives pct, pvesm, pveam and pvesh through subprocess."""

    def __init__(self, modules_path: str = '/etc/modules', localtime: str = '/etc/localtime'):
        self.modules_path = Path(modules_path)
        self.localtime = localtime

    def _run(self, cmd: Sequence[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a host command, raising HostCommandError on failure."""
        cmd = [str(part) for part in cmd]
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise HostCommandError(cmd, 127, str(e)) from e
        if check and result.returncode != 0:
            raise HostCommandError(cmd, result.returncode, result.stderr)
        return result

    # Storage

    def _parse_status(self, output: str) -> List[List[str]]:
        rows = []
        for line in output.splitlines()[1:]:
            parts = line.split()
            if len(parts) >= 6:
                rows.append(parts)
        return rows

    def list_storage_pools(self) -> List[StoragePool]:
        """Parse `pvesm status` (sizes are reported in KiB)."""
        all_rows = self._parse_status(self._run(['pvesm', 'status']).stdout)
        rootdir_tags = {
            row[0]
            for row in self._parse_status(
                self._run(['pvesm', 'status', '-content', ROOTDIR_CONTENT]).stdout
            )
        }

        pools = []
        for row in all_rows:
            tag, storage_type = row[0], row[1]
            try:
                free_bytes = int(row[5]) * 1024
            except ValueError:
                free_bytes = 0
            content = frozenset({ROOTDIR_CONTENT}) if tag in rootdir_tags else frozenset()
            pools.append(StoragePool(
                tag=tag,
                kind=StorageKind.from_type(storage_type),
                free_bytes=free_bytes,
                content=content,
            ))
        return pools

    def _find_pool(self, storage_tag: str) -> Optional[StoragePool]:
        for pool in self.list_storage_pools():
            if pool.tag == storage_tag:
                return pool
        return None

    def allocate_disk(self, storage_tag, vmid, name, size, disk_format):
        self._run([
            'pvesm', 'alloc', storage_tag, vmid, name, size,
            '--format', disk_format.value,
        ])

    def volume_path(self, volume_id: str) -> str:
        return self._run(['pvesm', 'path', volume_id]).stdout.strip()

    def make_filesystem(self, disk_path: str) -> None:
        self._run(['mkfs.ext4', disk_path])

    def list_volumes(self, storage_tag: str, vmid: int) -> List[str]:
        if self._find_pool(storage_tag) is None:
            raise VolumeListingUnsupported(f"Storage '{storage_tag}' is not known to the host")
        try:
            output = self._run(['pvesm', 'list', storage_tag, '--vmid', vmid]).stdout
        except HostCommandError as e:
            if any(marker in e.stderr.lower() for marker in UNSUPPORTED_MARKERS):
                raise VolumeListingUnsupported(
                    f"Storage '{storage_tag}' does not track volumes by guest id"
                ) from e
            raise
        volumes = []
        for line in output.splitlines()[1:]:
            parts = line.split()
            if parts:
                volumes.append(parts[0])
        return volumes

    def free_volume(self, volume_id: str) -> None:
        self._run(['pvesm', 'free', volume_id])

    # Identifiers and templates

    def next_container_identifier(self) -> int:
        output = self._run(['pvesh', 'get', '/cluster/nextid']).stdout.strip()
        try:
            return int(output.strip('"'))
        except ValueError as e:
            raise HostCommandError(['pvesh', 'get', '/cluster/nextid'], 1,
                                   f"unexpected output: {output!r}") from e

    def refresh_template_index(self) -> None:
        self._run(['pveam', 'update'])

    def list_available_templates(self, section: str = 'system') -> List[str]:
        """Parse `pveam available` lines such as 'system  debian-10-standard_10.7-1_amd64.tar.gz'."""
        output = self._run(['pveam', 'available', '-section', section]).stdout
        templates = []
        for line in output.splitlines():
            parts = line.split()
            if len(parts) >= 2:
                templates.append(parts[1])
        return templates

    def list_local_templates(self, storage: str) -> List[str]:
        output = self._run(['pveam', 'list', storage]).stdout
        templates = []
        for line in output.splitlines()[1:]:
            parts = line.split()
            if parts and 'vztmpl/' in parts[0]:
                templates.append(parts[0].split('/')[-1])
        return templates

    def download_template(self, storage: str, name: str) -> None:
        self._run(['pveam', 'download', storage, name])

    # Host facts

    def host_architecture(self) -> str:
        return self._run(['dpkg', '--print-architecture']).stdout.strip()

    def ensure_kernel_module(self, module: str) -> None:
        loaded = self._run(['lsmod']).stdout
        if module not in loaded:
            self._run(['modprobe', module])
            logger.info(f"Loaded kernel module '{module}'")

        existing = []
        if self.modules_path.exists():
            existing = [line.strip() for line in self.modules_path.read_text().splitlines()]
        if module not in existing:
            try:
                with open(self.modules_path, 'a') as f:
                    f.write(f"{module}\n")
            except OSError as e:
                raise HostCommandError(['tee', '-a', str(self.modules_path)], 1, str(e)) from e
            logger.debug(f"Added '{module}' to {self.modules_path}")

    # Container lifecycle

    def create_container(self, spec: ContainerSpec) -> None:
        cmd = [
            'pct', 'create', spec.vmid, spec.template.volume_id,
            '-arch', spec.arch,
            '-features', spec.feature_option,
            '-hostname', spec.hostname,
            '-net0', spec.network.to_option(),
            '-onboot', int(spec.onboot),
            '-ostype', spec.ostype,
            '-rootfs', spec.rootfs_option,
            '-swap', spec.swap,
            '-memory', spec.memory,
            '-storage', spec.disk.storage_tag,
        ]
        self._run(cmd)

    def mount(self, vmid: int) -> str:
        """Mount the rootfs; pct prints "mounted CT 100 in '/var/lib/lxc/100/rootfs'"."""
        output = self._run(['pct', 'mount', vmid]).stdout
        parts = output.split("'")
        if len(parts) < 2:
            raise HostCommandError(['pct', 'mount', str(vmid)], 1,
                                   f"could not parse mount path from {output.strip()!r}")
        return parts[1]

    def sync_timezone(self, mount_path: str) -> None:
        target = os.readlink(self.localtime) if os.path.islink(self.localtime) else self.localtime
        link = os.path.join(mount_path, 'etc', 'localtime')
        try:
            if os.path.lexists(link):
                os.remove(link)
            os.symlink(target, link)
        except OSError as e:
            raise HostCommandError(['ln', '-fs', target, link], 1, str(e)) from e

    def unmount(self, vmid: int) -> None:
        self._run(['pct', 'unmount', vmid])

    def start(self, vmid: int) -> None:
        self._run(['pct', 'start', vmid])

    def stop(self, vmid: int) -> None:
        self._run(['pct', 'stop', vmid])

    def destroy(self, vmid: int) -> None:
        self._run(['pct', 'destroy', vmid])

    def push_file(self, vmid: int, local_path: str, remote_path: str, mode: int) -> None:
        self._run(['pct', 'push', vmid, local_path, remote_path, '-perms', format(mode, 'o')])

    def exec(self, vmid: int, command: Sequence[str]) -> str:
        return self._run(['pct', 'exec', vmid, '--', *command]).stdout

    def query_interface_address(self, vmid: int, iface: str) -> str:
        output = self.exec(vmid, ['ip', 'a', 's', 'dev', iface])
        match = INET_RE.search(output)
        if not match:
            raise HostCommandError(['pct', 'exec', str(vmid), '--', 'ip', 'a', 's', 'dev', iface],
                                   1, f"no IPv4 address on {iface}")
        return match.group(1)

    def set_description(self, vmid: int, text: str) -> None:
        self._run(['pct', 'set', vmid, '-description', text])

    def status(self, vmid: int) -> ContainerStatus:
        """`pct status` fails for unknown ids and prints 'status: running' otherwise."""
        result = self._run(['pct', 'status', vmid], check=False)
        if result.returncode != 0:
            return ContainerStatus.absent()
        parts = result.stdout.split()
        running = len(parts) >= 2 and parts[1] == 'running'
        return ContainerStatus(defined=True, running=running)
