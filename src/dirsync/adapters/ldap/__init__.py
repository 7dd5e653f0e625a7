"""Public interface for the LDAP adapter."""

from __future__ import annotations

from .client import LdapSource, open_connection
from .translator import LdapEntry, LdapEntryError, parse_user

__all__ = [
    "LdapEntry",
    "LdapEntryError",
    "LdapSource",
    "open_connection",
    "parse_user",
]
