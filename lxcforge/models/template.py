"""LXC template models."""
from dataclasses import dataclass


@dataclass(frozen=True)
class TemplateReference:
    """A system template picked for a given OS family and version."""
    os_family: str
    os_version: str
    full_name: str  # e.g. debian-10-standard_10.7-1_amd64.tar.gz
    storage: str = "local"

    @property
    def prefix(self) -> str:
        return f"{self.os_family}-{self.os_version}"

    @property
    def volume_id(self) -> str:
        """Template volume as passed to `pct create`."""
        return f"{self.storage}:vztmpl/{self.full_name}"
