"""Tests for compensating rollback after a failed session."""
import pytest

from lxcforge.core.errors import HostCommandError, ProvisioningError
from lxcforge.core.rollback import RollbackController
from lxcforge.core.session import ProvisioningSession, Stage
from lxcforge.models import StorageKind, StoragePool
from lxcforge.models.storage import GIB
from lxcforge.services.proxmox.host import MockHost

# Operation that fails, and the stage the session should have reached
FAILURE_POINTS = [
    ('allocate_disk', Stage.INIT),
    ('volume_path', Stage.STORAGE_ALLOCATED),
    ('make_filesystem', Stage.STORAGE_ALLOCATED),
    ('host_architecture', Stage.FILESYSTEM_READY),
    ('create_container', Stage.FILESYSTEM_READY),
    ('mount', Stage.CONTAINER_CREATED),
    ('sync_timezone', Stage.CONTAINER_CREATED),
    ('unmount', Stage.MOUNTED),
    ('start', Stage.TIMEZONE_SYNCED),
    ('push_file', Stage.STARTED),
    ('exec', Stage.SETUP_PUSHED),
    ('query_interface_address', Stage.SETUP_EXECUTED),
    ('set_description', Stage.SETUP_EXECUTED),
]


def fail_and_rollback(host, pool, template, operation):
    session = ProvisioningSession.open(host, pool, template)
    host.fail(operation)
    with pytest.raises(ProvisioningError):
        session.run()
    RollbackController(host).rollback(session)
    return session


def assert_clean(host, session):
    assert not host.status(session.vmid).defined
    assert host.volumes_for(session.storage.tag, session.vmid) == []
    assert session.vmid not in host.mounted


class TestRollbackLeavesHostClean:
    @pytest.mark.parametrize("operation,reached", FAILURE_POINTS)
    def test_dir_storage(self, mock_host, dir_pool, debian_template, operation, reached):
        session = fail_and_rollback(mock_host, dir_pool, debian_template, operation)

        assert session.stage is reached
        assert_clean(mock_host, session)

    @pytest.mark.parametrize("operation,reached", [
        point for point in FAILURE_POINTS if point[0] not in ('volume_path', 'make_filesystem')
    ])
    def test_zfs_storage(self, debian_template, zfs_pool, operation, reached):
        host = MockHost.with_defaults()
        host.pools = [zfs_pool]
        session = fail_and_rollback(host, zfs_pool, debian_template, operation)

        assert_clean(host, session)

    def test_init_failure_leaves_nothing(self, mock_host, dir_pool, debian_template):
        mock_host.fail('next_container_identifier')

        with pytest.raises(ProvisioningError):
            ProvisioningSession.open(mock_host, dir_pool, debian_template)

        assert mock_host.containers == {}
        assert mock_host.volumes == {}


class TestRollbackPolicy:
    def test_unmounts_first(self, mock_host, dir_pool, debian_template):
        session = fail_and_rollback(mock_host, dir_pool, debian_template, 'sync_timezone')

        assert session.mounted is False
        rollback_calls = mock_host.calls[mock_host.calls.index('sync_timezone') + 1:]
        assert rollback_calls[0] == 'unmount'
        assert rollback_calls.index('unmount') < rollback_calls.index('destroy')

    def test_running_container_stopped_before_destroy(self, mock_host, dir_pool, debian_template):
        fail_and_rollback(mock_host, dir_pool, debian_template, 'exec')

        tail = mock_host.calls[mock_host.calls.index('exec'):]
        assert tail.index('stop') < tail.index('destroy')

    def test_stopped_container_not_stopped(self, mock_host, dir_pool, debian_template):
        fail_and_rollback(mock_host, dir_pool, debian_template, 'start')

        assert 'stop' not in mock_host.calls
        assert 'destroy' in mock_host.calls

    def test_container_less_disk_freed(self, mock_host, dir_pool, debian_template):
        session = fail_and_rollback(mock_host, dir_pool, debian_template, 'make_filesystem')

        assert 'destroy' not in mock_host.calls
        assert 'free_volume' in mock_host.calls
        assert_clean(mock_host, session)

    def test_status_requeried_not_trusted_from_stage(self, mock_host, dir_pool, debian_template):
        """Host state ahead of the recorded stage is still cleaned up."""
        session = ProvisioningSession.open(mock_host, dir_pool, debian_template)
        session.allocate_storage()
        session.create_container()
        # The process never recorded these steps
        assert session.stage is Stage.INIT

        RollbackController(mock_host).rollback(session)

        assert_clean(mock_host, session)

    def test_never_raises_and_warns(self, mock_host, dir_pool, debian_template, caplog):
        session = ProvisioningSession.open(mock_host, dir_pool, debian_template)
        mock_host.fail('exec')
        with pytest.raises(ProvisioningError):
            session.run()
        mock_host.fail('stop')
        mock_host.fail('destroy')

        RollbackController(mock_host).rollback(session)

        assert "failed to stop container" in caplog.text
        assert "failed to destroy container" in caplog.text
        assert 'destroy' in mock_host.calls

    def test_status_query_failure_still_frees_disk(self, mock_host, dir_pool, debian_template, caplog):
        session = ProvisioningSession.open(mock_host, dir_pool, debian_template)
        session.allocate_storage()
        mock_host.fail('status')

        RollbackController(mock_host).rollback(session)

        assert "Could not query status" in caplog.text
        assert mock_host.volumes_for('local', session.vmid) == []

    def test_untracked_storage_is_warning_noop(self, mock_host, debian_template, caplog):
        pool = StoragePool(tag='iscsi', kind=StorageKind.OTHER, free_bytes=10 * GIB)
        mock_host.pools.append(pool)
        mock_host.untracked_storages.add('iscsi')
        session = ProvisioningSession.open(mock_host, pool, debian_template)
        session.allocate_storage()

        RollbackController(mock_host).rollback(session)

        assert "does not track volumes" in caplog.text
        assert 'free_volume' not in mock_host.calls

    def test_only_own_volumes_freed(self, mock_host, dir_pool, debian_template):
        mock_host.volumes['local:999/vm-999-disk-0.raw'] = ('local', 999)
        fail_and_rollback(mock_host, dir_pool, debian_template, 'make_filesystem')

        assert 'local:999/vm-999-disk-0.raw' in mock_host.volumes


class FlakyListingHost(MockHost):
    def list_volumes(self, storage_tag, vmid):
        raise HostCommandError(['pvesm', 'list', storage_tag], 5, 'storage offline')


def test_listing_error_is_warning(dir_pool, debian_template, caplog):
    host = FlakyListingHost.with_defaults()
    session = ProvisioningSession.open(host, dir_pool, debian_template)
    session.allocate_storage()

    RollbackController(host).rollback(session)

    assert "Could not list volumes" in caplog.text
