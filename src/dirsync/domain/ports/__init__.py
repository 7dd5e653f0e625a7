"""Domain port definitions for adapters."""

from __future__ import annotations

from .directory import IdentityDirectory, PlatformUser
from .sources import DirectorySource, RemovedUserSource, sort_and_deduplicate

__all__ = [
    "DirectorySource",
    "IdentityDirectory",
    "PlatformUser",
    "RemovedUserSource",
    "sort_and_deduplicate",
]
