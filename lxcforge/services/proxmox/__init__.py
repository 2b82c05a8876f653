"""Proxmox host integration: host bindings, storage selection, templates."""
from lxcforge.services.proxmox.storage import StorageSelector, format_storage_menu
from lxcforge.services.proxmox.templates import TemplateResolver

__all__ = ['StorageSelector', 'TemplateResolver', 'format_storage_menu']
