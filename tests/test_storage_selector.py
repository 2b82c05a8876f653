"""Tests for storage pool selection and the menu formatter."""
import pytest

from lxcforge.core.errors import NoEligibleStorage, SelectionCancelled
from lxcforge.models import StorageKind, StoragePool
from lxcforge.models.storage import GIB
from lxcforge.services.proxmox.storage import (
    LABEL_OFFSET,
    MENU_CHROME,
    StorageSelector,
    format_storage_label,
    format_storage_menu,
)


def make_pool(tag, kind=StorageKind.DIR, free=10 * GIB, content=frozenset({'rootdir'})):
    return StoragePool(tag=tag, kind=kind, free_bytes=free, content=content)


class ExplodingChooser:
    """Fails the test if the selector ever prompts."""

    def __call__(self, menu):
        raise AssertionError("chooser should not be called")


class ScriptedChooser:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.menus = []

    def __call__(self, menu):
        self.menus.append(menu)
        return self.answers.pop(0)


class TestStorageLabel:
    def test_label_layout(self, dir_pool):
        label = format_storage_label(dir_pool)

        assert label == "  Type: dir        Free:     50.00GB "
        assert len(label) == len("  Type: ") + 10 + len(" Free: ") + 10 + 1

    def test_kind_padded_to_ten(self):
        label = format_storage_label(make_pool('tank', kind=StorageKind.ZFSPOOL, free=1024))

        assert label.startswith("  Type: zfspool    Free: ")
        assert label.endswith("1.00KB ")

    def test_free_space_iec_two_decimals(self):
        label = format_storage_label(make_pool('big', free=int(1.5 * 1024 ** 4)))

        assert "1.50TB" in label


class TestStorageMenu:
    def test_width_covers_longest_label(self):
        pools = [
            make_pool('a', free=1),
            make_pool('b', kind=StorageKind.ZFSPOOL, free=999 * 1024 ** 5),
            make_pool('c', kind=StorageKind.OTHER, free=5 * GIB),
        ]
        menu = format_storage_menu(pools)

        longest = max(len(row.label) for row in menu.rows)
        assert menu.label_width == longest + LABEL_OFFSET
        assert menu.width == menu.label_width + MENU_CHROME
        assert all(len(row.label) <= menu.label_width for row in menu.rows)

    @pytest.mark.parametrize("count", [2, 3, 7])
    def test_one_row_per_pool_in_order(self, count):
        pools = [make_pool(f"pool{i}", free=(i + 1) * GIB) for i in range(count)]
        menu = format_storage_menu(pools)

        assert menu.keys == [f"pool{i}" for i in range(count)]

    def test_formatter_is_pure(self, dir_pool, zfs_pool):
        first = format_storage_menu([dir_pool, zfs_pool])
        second = format_storage_menu([dir_pool, zfs_pool])

        assert first == second


class TestStorageSelector:
    def test_single_pool_never_prompts(self, dir_pool):
        selector = StorageSelector(chooser=ExplodingChooser())

        assert selector.select([dir_pool]) is dir_pool

    def test_single_eligible_after_filtering(self, dir_pool):
        backup = make_pool('backup', content=frozenset({'backup', 'iso'}))
        selector = StorageSelector(chooser=ExplodingChooser())

        assert selector.select([backup, dir_pool]) is dir_pool

    def test_no_eligible_pool(self):
        backup = make_pool('backup', content=frozenset({'backup'}))

        with pytest.raises(NoEligibleStorage):
            StorageSelector().select([backup])

    def test_empty_input(self):
        with pytest.raises(NoEligibleStorage):
            StorageSelector().select([])

    def test_multiple_pools_prompt(self, dir_pool, zfs_pool):
        chooser = ScriptedChooser('local-zfs')
        selected = StorageSelector(chooser=chooser).select([dir_pool, zfs_pool])

        assert selected is zfs_pool
        assert chooser.menus[0].keys == ['local', 'local-zfs']

    def test_cancel(self, dir_pool, zfs_pool):
        with pytest.raises(SelectionCancelled):
            StorageSelector(chooser=ScriptedChooser(None)).select([dir_pool, zfs_pool])

    def test_unknown_answer_asks_again(self, dir_pool, zfs_pool):
        chooser = ScriptedChooser('nope', 'local')
        selected = StorageSelector(chooser=chooser).select([dir_pool, zfs_pool])

        assert selected is dir_pool
        assert len(chooser.menus) == 2

    def test_no_chooser_with_several_pools(self, dir_pool, zfs_pool):
        with pytest.raises(SelectionCancelled):
            StorageSelector().select([dir_pool, zfs_pool])

    def test_preselected_skips_prompt(self, dir_pool, zfs_pool):
        selector = StorageSelector(chooser=ExplodingChooser(), preselected='local-zfs')

        assert selector.select([dir_pool, zfs_pool]) is zfs_pool

    def test_preselected_must_be_eligible(self, dir_pool):
        backup = make_pool('backup', content=frozenset({'backup'}))
        selector = StorageSelector(preselected='backup')

        with pytest.raises(NoEligibleStorage):
            selector.select([dir_pool, backup])
