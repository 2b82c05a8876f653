"""Top-level provisioning flow: prepare host, select, resolve, provision."""
from typing import Optional

from lxcforge.core.config import ForgeConfig, get_config
from lxcforge.core.errors import (
    HostCapabilityUnavailable,
    HostCommandError,
    HostPreparationFailed,
    ProvisioningError,
)
from lxcforge.core.logger import get_logger
from lxcforge.core.rollback import RollbackController
from lxcforge.core.session import ProvisioningSession
from lxcforge.models import ProvisioningResult, StoragePool
from lxcforge.services.proxmox.host.base import HostCapability
from lxcforge.services.proxmox.storage import StorageSelector
from lxcforge.services.proxmox.templates import TemplateResolver

logger = get_logger(__name__)


class Provisioner:
    """Runs one provisioning invocation end to end.

    Failures before a container id exists leave nothing behind and are
    raised as-is. Once a session is open, any failure or interruption is
    logged, the rollback controller runs exactly once, and the error is
    re-raised so the caller can exit with its code. Unexpected exceptions
    are re-raised as HostCapabilityUnavailable.
    """

    def __init__(
        self,
        host: HostCapability,
        selector: Optional[StorageSelector] = None,
        config: Optional[ForgeConfig] = None,
    ):
        self.host = host
        self.config = config or get_config()
        self.selector = selector or StorageSelector()
        self.resolver = TemplateResolver(
            host,
            storage=self.config.template_storage,
            section=self.config.template_section,
        )
        self.rollback = RollbackController(host)
        self.session: Optional[ProvisioningSession] = None

    def prepare_host(self) -> None:
        for module in self.config.kernel_modules:
            try:
                self.host.ensure_kernel_module(module)
            except HostCommandError as e:
                raise HostPreparationFailed.from_host(
                    f"Failed to load '{module}' module", e, context='host') from e

    def select_storage(self) -> StoragePool:
        try:
            pools = self.host.list_storage_pools()
        except HostCommandError as e:
            raise HostCapabilityUnavailable.from_host(
                "Failed to list storage pools", e, context='storage_selection') from e
        return self.selector.select(pools)

    def run(self) -> ProvisioningResult:
        """Provision the container; errors are logged here before being re-raised."""
        try:
            self.prepare_host()
            storage = self.select_storage()
            template = self.resolver.resolve(self.config.os_family, self.config.os_version)
            self.session = ProvisioningSession.open(
                self.host, storage, template, config=self.config)
        except ProvisioningError as e:
            logger.error(f"[{e.flag()}] {e}")
            raise

        try:
            return self.session.run()
        except ProvisioningError as e:
            logger.error(f"[{e.flag()}] {e}")
            self.rollback.rollback(self.session)
            raise
        except Exception as e:
            error = HostCapabilityUnavailable(
                f"Unexpected failure: {e}", context=self.session.stage.context)
            logger.error(f"[{error.flag()}] {error}")
            self.rollback.rollback(self.session)
            raise error from e
        except BaseException:
            # Interrupted (e.g. Ctrl-C during the setup script)
            logger.error(f"[130@{self.session.stage.context}] Provisioning interrupted.")
            self.rollback.rollback(self.session)
            raise
