"""Host capability bindings."""
from lxcforge.services.proxmox.host.base import HostCapability
from lxcforge.services.proxmox.host.mock import MockHost
from lxcforge.services.proxmox.host.pve import PveHost


def get_host(mock: bool = False) -> HostCapability:
    """Return the host binding for the current run."""
    if mock:
        return MockHost.with_defaults()
    return PveHost()


__all__ = ['HostCapability', 'MockHost', 'PveHost', 'get_host']
