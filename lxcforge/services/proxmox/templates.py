"""Resolve the newest system template for an OS family and version."""
import re
from typing import List, Tuple, Union

from lxcforge.core.errors import (
    HostCapabilityUnavailable,
    HostCommandError,
    TemplateDownloadFailed,
    TemplateNotFound,
)
from lxcforge.core.logger import get_logger
from lxcforge.models import TemplateReference
from lxcforge.services.proxmox.host.base import HostCapability

logger = get_logger(__name__)

_NUMBER_RE = re.compile(r'(\d+)')


def natural_key(text: str) -> Tuple[Tuple[int, Union[int, str]], ...]:
    """Split text into comparable chunks, numeric runs compared as integers."""
    parts = []
    for chunk in _NUMBER_RE.split(text):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append((0, int(chunk)))
        else:
            parts.append((1, chunk))
    return tuple(parts)


def template_sort_key(name: str):
    """Version-aware key: drop the leading family segment, compare the rest naturally.

    debian-10.2-std < debian-10.7-std < debian-10.10-std
    """
    segments = name.split('-')
    return tuple(natural_key(segment) for segment in segments[1:]), name


def match_templates(names: List[str], prefix: str) -> List[str]:
    """Names containing ``prefix``, trimmed so they start at it."""
    matches = []
    for name in names:
        index = name.find(prefix)
        if index >= 0:
            matches.append(name[index:])
    return matches


class TemplateResolver:
    """Finds and fetches the template a container is built from."""

    def __init__(self, host: HostCapability, storage: str = 'local', section: str = 'system'):
        self.host = host
        self.storage = storage
        self.section = section

    def candidates(self, os_family: str, os_version: str) -> List[str]:
        """Matching template names, oldest first."""
        prefix = f"{os_family}-{os_version}"
        try:
            available = self.host.list_available_templates(self.section)
        except HostCommandError as e:
            raise HostCapabilityUnavailable.from_host(
                "Failed to list available templates", e, context='template') from e
        return sorted(match_templates(available, prefix), key=template_sort_key)

    def resolve(self, os_family: str, os_version: str) -> TemplateReference:
        logger.info("Updating LXC template list...")
        try:
            self.host.refresh_template_index()
        except HostCommandError as e:
            raise HostCapabilityUnavailable.from_host(
                "Failed to update the template index", e, context='template') from e

        candidates = self.candidates(os_family, os_version)
        if not candidates:
            raise TemplateNotFound(
                f"No LXC template matches '{os_family}-{os_version}'.", context='template')

        reference = TemplateReference(
            os_family=os_family,
            os_version=os_version,
            full_name=candidates[-1],
            storage=self.storage,
        )
        self.ensure_local(reference)
        return reference

    def ensure_local(self, reference: TemplateReference) -> None:
        """Download the template unless it already sits on the template storage."""
        try:
            present = reference.full_name in self.host.list_local_templates(self.storage)
        except HostCommandError as e:
            raise HostCapabilityUnavailable.from_host(
                "Failed to list local templates", e, context='template') from e

        if present:
            logger.debug(f"Template {reference.full_name} already available")
            return

        logger.info(f"Downloading LXC template {reference.full_name}...")
        try:
            self.host.download_template(self.storage, reference.full_name)
        except HostCommandError as e:
            raise TemplateDownloadFailed(
                exit_code=e.returncode, context='template') from e
