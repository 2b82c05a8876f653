"""Compensating actions for a failed provisioning session."""
from lxcforge.core.errors import VolumeListingUnsupported
from lxcforge.core.logger import get_logger
from lxcforge.core.session import ProvisioningSession
from lxcforge.models import ContainerStatus
from lxcforge.services.proxmox.host.base import HostCapability

logger = get_logger(__name__)


class RollbackController:
    """Undo whatever a session left on the host.

    Decisions use the host's view at rollback time, not ``session.stage``:
    the stage only says what this process believes happened. Every step is
    attempted and failures are logged as warnings; ``rollback`` never raises.
    """

    def __init__(self, host: HostCapability):
        self.host = host

    def rollback(self, session: ProvisioningSession) -> None:
        vmid = session.vmid
        logger.info(f"Rolling back container {vmid} (reached {session.stage.name})")

        if session.mounted:
            if self._attempt(f"unmount container {vmid}", self.host.unmount, vmid):
                session.mounted = False
                session.mount_path = None

        status = self._query_status(vmid)
        if status.defined:
            if status.running:
                self._attempt(f"stop container {vmid}", self.host.stop, vmid)
            self._attempt(f"destroy container {vmid}", self.host.destroy, vmid)
        else:
            self._free_volumes(session)

    def _query_status(self, vmid: int) -> ContainerStatus:
        try:
            return self.host.status(vmid)
        except Exception as e:
            logger.warning(f"Could not query status of container {vmid}: {e}")
        # Still try to release an orphaned disk
        return ContainerStatus.absent()

    def _free_volumes(self, session: ProvisioningSession) -> None:
        storage_tag = session.storage.tag
        try:
            volumes = self.host.list_volumes(storage_tag, session.vmid)
        except VolumeListingUnsupported as e:
            logger.warning(f"{e}; leaving any volume of {session.vmid} in place")
            return
        except Exception as e:
            logger.warning(f"Could not list volumes of {session.vmid} on '{storage_tag}': {e}")
            return

        for volume_id in volumes:
            self._attempt(f"free volume {volume_id}", self.host.free_volume, volume_id)

    def _attempt(self, action: str, func, *args) -> bool:
        try:
            func(*args)
        except Exception as e:
            logger.warning(f"Rollback: failed to {action}: {e}")
            return False
        logger.debug(f"Rollback: {action}")
        return True
