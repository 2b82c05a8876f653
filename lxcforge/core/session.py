"""Provisioning state machine for a single container."""
from contextlib import contextmanager
from enum import IntEnum
from typing import Optional, Type

from lxcforge.core.config import (
    DISK_SIZE_BYTES,
    HOSTNAME,
    INTERFACE,
    MANAGEMENT_PORT,
    MEMORY_MB,
    SWAP_MB,
    ForgeConfig,
    get_config,
)
from lxcforge.core.errors import (
    AllocationFailed,
    ContainerCreationFailed,
    FilesystemCreationFailed,
    HostCapabilityUnavailable,
    HostCommandError,
    MountFailed,
    ProvisioningError,
    SetupExecutionFailed,
    SetupPushFailed,
    StartFailed,
)
from lxcforge.core.logger import get_logger
from lxcforge.models import (
    ContainerSpec,
    DiskSpec,
    NetworkConfig,
    ProvisioningResult,
    StoragePool,
    TemplateReference,
)
from lxcforge.services.proxmox.host.base import HostCapability

logger = get_logger(__name__)

SETUP_MODE = 0o755


class Stage(IntEnum):
    """Furthest point of the forward sequence reached by a session."""
    INIT = 0
    STORAGE_ALLOCATED = 1
    FILESYSTEM_READY = 2
    CONTAINER_CREATED = 3
    MOUNTED = 4
    TIMEZONE_SYNCED = 5
    STARTED = 6
    SETUP_PUSHED = 7
    SETUP_EXECUTED = 8
    COMPLETE = 9

    @property
    def context(self) -> str:
        return self.name.lower()


def endpoints_for(ip: str, hostname: str = HOSTNAME, port: int = MANAGEMENT_PORT):
    return [f"https://{ip}:{port}", f"https://{hostname}:{port}"]


def description_for(ip: str, port: int = MANAGEMENT_PORT) -> str:
    return f"Access web interface using the following URL.\n\nhttps://{ip}:{port}"


class ProvisioningSession:
    """Owns the id, disk and mount state of one container being created.

    ``stage`` only moves forward, and only after the host call behind it
    succeeded. Any failure raises a ProvisioningError with the session
    left at its last reached stage, ready for the rollback controller.
    """

    def __init__(
        self,
        host: HostCapability,
        vmid: int,
        storage: StoragePool,
        template: TemplateReference,
        config: Optional[ForgeConfig] = None,
    ):
        self.host = host
        self.vmid = vmid
        self.storage = storage
        self.template = template
        self.config = config or get_config()
        self.disk = DiskSpec.for_pool(storage, vmid, DISK_SIZE_BYTES)
        self.stage = Stage.INIT
        self.mounted = False
        self.mount_path: Optional[str] = None
        self.ip: Optional[str] = None

    @classmethod
    def open(
        cls,
        host: HostCapability,
        storage: StoragePool,
        template: TemplateReference,
        config: Optional[ForgeConfig] = None,
    ) -> "ProvisioningSession":
        """Obtain a fresh container id and start a session with it."""
        try:
            vmid = host.next_container_identifier()
        except HostCommandError as e:
            raise HostCapabilityUnavailable.from_host(
                "Failed to obtain a container ID", e, context=Stage.INIT.context) from e
        logger.info(f"Container ID is {vmid}.")
        return cls(host, vmid, storage, template, config=config)

    def _advance(self, stage: Stage) -> None:
        if stage <= self.stage:
            raise ValueError(f"Cannot move from {self.stage.name} back to {stage.name}")
        self.stage = stage
        logger.debug(f"CT {self.vmid}: reached {stage.name}")

    @contextmanager
    def _host_call(self, error_cls: Type[ProvisioningError], target: Stage, message: Optional[str] = None):
        """Turn a host failure into the typed error for ``target``."""
        try:
            yield
        except HostCommandError as e:
            raise error_cls.from_host(
                message or error_cls.default_message, e, context=target.context) from e

    def run(self) -> ProvisioningResult:
        """Drive the session from its current stage to COMPLETE."""
        steps = [
            (Stage.STORAGE_ALLOCATED, self.allocate_storage),
            (Stage.FILESYSTEM_READY, self.prepare_filesystem),
            (Stage.CONTAINER_CREATED, self.create_container),
            (Stage.MOUNTED, self.mount_rootfs),
            (Stage.TIMEZONE_SYNCED, self.unmount_rootfs),
            (Stage.STARTED, self.start_container),
            (Stage.SETUP_PUSHED, self.push_setup),
            (Stage.SETUP_EXECUTED, self.execute_setup),
        ]
        for stage, step in steps:
            if self.stage < stage:
                step()
                self._advance(stage)
        return self.complete()

    # Entry actions

    def allocate_storage(self) -> None:
        disk = self.disk
        with self._host_call(AllocationFailed, Stage.STORAGE_ALLOCATED):
            self.host.allocate_disk(
                disk.storage_tag, self.vmid, disk.name, disk.size_option, disk.format)
        logger.debug(f"Allocated {disk.volume_id} ({disk.size_option}, {disk.format.value})")

    def prepare_filesystem(self) -> None:
        if not self.disk.needs_filesystem:
            logger.warning("Some containers may not work properly due to ZFS not supporting 'fallocate'.")
            return
        with self._host_call(FilesystemCreationFailed, Stage.FILESYSTEM_READY):
            path = self.host.volume_path(self.disk.volume_id)
            self.host.make_filesystem(path)

    def container_spec(self, arch: str) -> ContainerSpec:
        return ContainerSpec(
            vmid=self.vmid,
            template=self.template,
            arch=arch,
            hostname=HOSTNAME,
            disk=self.disk,
            memory=MEMORY_MB,
            swap=SWAP_MB,
            network=NetworkConfig(name=INTERFACE, bridge=self.config.bridge),
        )

    def create_container(self) -> None:
        logger.info("Creating LXC container...")
        with self._host_call(ContainerCreationFailed, Stage.CONTAINER_CREATED):
            arch = self.host.host_architecture()
            self.host.create_container(self.container_spec(arch))

    def mount_rootfs(self) -> None:
        with self._host_call(MountFailed, Stage.MOUNTED):
            self.mount_path = self.host.mount(self.vmid)
            self.mounted = True
            self.host.sync_timezone(self.mount_path)

    def unmount_rootfs(self) -> None:
        with self._host_call(MountFailed, Stage.TIMEZONE_SYNCED, "Failed to unmount the container filesystem."):
            self.host.unmount(self.vmid)
        self.mounted = False
        self.mount_path = None

    def start_container(self) -> None:
        logger.info("Starting LXC container...")
        with self._host_call(StartFailed, Stage.STARTED):
            self.host.start(self.vmid)

    def push_setup(self) -> None:
        with self._host_call(SetupPushFailed, Stage.SETUP_PUSHED):
            self.host.push_file(
                self.vmid, self.config.setup_script, self.config.setup_target, SETUP_MODE)

    def execute_setup(self) -> None:
        with self._host_call(SetupExecutionFailed, Stage.SETUP_EXECUTED):
            self.host.exec(self.vmid, [self.config.setup_target])

    def complete(self) -> ProvisioningResult:
        """Report connection details and record them on the container."""
        with self._host_call(HostCapabilityUnavailable, Stage.COMPLETE,
                             "Failed to finalize the container."):
            self.ip = self.host.query_interface_address(self.vmid, INTERFACE)
            description = description_for(self.ip)
            self.host.set_description(self.vmid, description)
        self._advance(Stage.COMPLETE)
        logger.info(f"Successfully created LXC container {self.vmid}.")
        return ProvisioningResult(
            vmid=self.vmid,
            hostname=HOSTNAME,
            ip=self.ip,
            endpoints=endpoints_for(self.ip),
            description=description,
            storage=self.storage.tag,
        )
