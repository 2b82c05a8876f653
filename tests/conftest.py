"""Shared test fixtures for lxcforge tests."""
import pytest

from lxcforge.core.config import ForgeConfig, set_config
from lxcforge.models import StorageKind, StoragePool, TemplateReference
from lxcforge.models.storage import GIB
from lxcforge.services.proxmox.host import MockHost


@pytest.fixture(autouse=True)
def forge_config():
    """Fresh default configuration for every test."""
    config = ForgeConfig()
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def mock_host():
    """Single 'local' dir pool with 50GB free and Debian 10 templates."""
    return MockHost.with_defaults()


@pytest.fixture
def zfs_pool():
    return StoragePool(tag='local-zfs', kind=StorageKind.ZFSPOOL, free_bytes=200 * GIB)


@pytest.fixture
def dir_pool():
    return StoragePool(tag='local', kind=StorageKind.DIR, free_bytes=50 * GIB)


@pytest.fixture
def multi_pool_host(dir_pool, zfs_pool):
    """Two eligible pools plus one that only stores backups."""
    host = MockHost.with_defaults()
    host.pools = [
        dir_pool,
        zfs_pool,
        StoragePool(tag='backup', kind=StorageKind.NFS, free_bytes=GIB, content=frozenset({'backup'})),
    ]
    return host


@pytest.fixture
def debian_template():
    return TemplateReference(
        os_family='debian',
        os_version='10',
        full_name='debian-10-standard_10.7-1_amd64.tar.gz',
    )
