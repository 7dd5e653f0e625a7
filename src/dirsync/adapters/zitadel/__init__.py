"""Public interface for the Zitadel adapter."""

from __future__ import annotations

from .client import ZitadelDirectory, read_access_token
from .translator import UserRequestOptions, parse_platform_user

__all__ = [
    "UserRequestOptions",
    "ZitadelDirectory",
    "parse_platform_user",
    "read_access_token",
]
