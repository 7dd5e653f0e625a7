"""Public interface for the removed-users feed adapter."""

from __future__ import annotations

from .client import UktSource
from .schema import RemovedUsersResponse, TokenResponse

__all__ = ["RemovedUsersResponse", "TokenResponse", "UktSource"]
