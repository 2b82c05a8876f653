"""Error taxonomy for container provisioning.

Every error is terminal for the current session. Errors raised after a
container identifier was obtained are routed to the rollback controller
before the process exits with ``exit_code``.
"""
from typing import Optional, Sequence


class HostCommandError(Exception):
    """A host tool exited non-zero (or could not be run at all)."""

    def __init__(self, cmd: Sequence[str], returncode: int = 1, stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode or 1
        self.stderr = (stderr or "").strip()
        message = f"'{' '.join(self.cmd)}' exited with {self.returncode}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class VolumeListingUnsupported(Exception):
    """The host cannot list volumes by owner on this storage."""
    pass


class ProvisioningError(Exception):
    """Base class for provisioning failures."""

    default_message = "Unknown failure occurred."

    def __init__(
        self,
        message: Optional[str] = None,
        exit_code: int = 1,
        context: Optional[str] = None,
    ):
        super().__init__(message or self.default_message)
        self.exit_code = exit_code or 1
        self.context = context

    @classmethod
    def from_host(cls, message: str, error: HostCommandError, context: Optional[str] = None):
        """Wrap a host command failure, keeping its return code."""
        return cls(f"{message} ({error})", exit_code=error.returncode, context=context)

    def flag(self) -> str:
        """Short origin tag such as '2@storage_allocated'."""
        return f"{self.exit_code}@{self.context or 'setup'}"


class HostPreparationFailed(ProvisioningError):
    default_message = "Failed to prepare the host."


class HostCapabilityUnavailable(ProvisioningError):
    default_message = "Host capability is unavailable."


class NoEligibleStorage(ProvisioningError):
    default_message = "Unable to detect valid storage location."


class SelectionCancelled(ProvisioningError):
    default_message = "Storage selection was cancelled."


class TemplateNotFound(ProvisioningError):
    default_message = "No matching LXC template found."


class TemplateDownloadFailed(ProvisioningError):
    default_message = "A problem occurred while downloading the LXC template."


class AllocationFailed(ProvisioningError):
    default_message = "Failed to allocate the container disk."


class FilesystemCreationFailed(ProvisioningError):
    default_message = "Failed to create a filesystem on the container disk."


class ContainerCreationFailed(ProvisioningError):
    default_message = "Failed to create the container."


class MountFailed(ProvisioningError):
    default_message = "Failed to mount the container filesystem."


class StartFailed(ProvisioningError):
    default_message = "Failed to start the container."


class SetupPushFailed(ProvisioningError):
    default_message = "Failed to push the setup script into the container."


class SetupExecutionFailed(ProvisioningError):
    default_message = "The setup script failed inside the container."
