"""lxcforge - provision a single LXC container on a Proxmox VE host."""

__version__ = "0.1.0"
