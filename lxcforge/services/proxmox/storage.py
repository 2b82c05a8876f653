"""Storage pool selection for the container root filesystem."""
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from lxcforge.core.errors import NoEligibleStorage, SelectionCancelled
from lxcforge.core.logger import get_logger
from lxcforge.models import StoragePool
from lxcforge.models.storage import format_iec

logger = get_logger(__name__)

# Padding added to the longest label so nothing is truncated
LABEL_OFFSET = 2
# Extra columns taken by the dialog border, radio markers and tag column
MENU_CHROME = 23


@dataclass(frozen=True)
class StorageMenuRow:
    tag: str
    label: str


@dataclass(frozen=True)
class StorageMenu:
    """Pure rendering of the candidate list, independent of any widget."""
    label_width: int
    width: int
    rows: List[StorageMenuRow]

    @property
    def keys(self) -> List[str]:
        return [row.tag for row in self.rows]


# Receives the menu and returns the chosen tag, or None when cancelled
StorageChooser = Callable[[StorageMenu], Optional[str]]


def format_storage_label(pool: StoragePool) -> str:
    """Fixed-width label, e.g. '  Type: dir        Free:     48.83GB '."""
    return f"  Type: {pool.kind.value:<10} Free: {format_iec(pool.free_bytes):>9}B "


def format_storage_menu(pools: Sequence[StoragePool]) -> StorageMenu:
    """Build labels and the column width for a list of candidates."""
    rows = [StorageMenuRow(tag=pool.tag, label=format_storage_label(pool)) for pool in pools]
    label_width = max((len(row.label) for row in rows), default=0) + LABEL_OFFSET
    return StorageMenu(label_width=label_width, width=label_width + MENU_CHROME, rows=rows)


def eligible_pools(pools: Sequence[StoragePool]) -> List[StoragePool]:
    """Pools that can hold a container root filesystem."""
    return [pool for pool in pools if pool.supports_rootdir]


class StorageSelector:
    """Pick the storage pool that will hold the container disk.

    A single eligible pool is returned without prompting, so the common
    case stays non-interactive. With several, ``chooser`` is asked until
    it returns one of the offered tags or cancels.
    """

    def __init__(self, chooser: Optional[StorageChooser] = None, preselected: Optional[str] = None):
        self.chooser = chooser
        self.preselected = preselected

    def select(self, pools: Sequence[StoragePool]) -> StoragePool:
        candidates = eligible_pools(pools)
        if not candidates:
            logger.warning("'Container' needs to be selected for at least one storage location.")
            raise NoEligibleStorage(context='storage_selection')

        by_tag = {pool.tag: pool for pool in candidates}

        if self.preselected is not None:
            if self.preselected not in by_tag:
                raise NoEligibleStorage(
                    f"Storage '{self.preselected}' cannot hold container root filesystems.",
                    context='storage_selection',
                )
            return self._chosen(by_tag[self.preselected])

        if len(candidates) == 1:
            return self._chosen(candidates[0])

        if self.chooser is None:
            raise SelectionCancelled(
                "Several storage pools qualify but no interactive chooser is available.",
                context='storage_selection',
            )

        menu = format_storage_menu(candidates)
        while True:
            choice = self.chooser(menu)
            if choice is None:
                raise SelectionCancelled(context='storage_selection')
            if choice in by_tag:
                return self._chosen(by_tag[choice])
            logger.warning(f"'{choice}' is not one of the offered storage pools")

    def _chosen(self, pool: StoragePool) -> StoragePool:
        logger.info(f"Using '{pool.tag}' for storage location.")
        return pool
