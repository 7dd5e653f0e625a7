"""Source-agnostic reconciliation core."""

from __future__ import annotations

from .encoding import (
    ExternalIdEncoding,
    classify_external_id,
    convert_external_id,
    convert_user_external_id,
    detect_population_encoding,
)
from .errors import (
    EncodingInvariantError,
    MergeInvariantError,
    PlatformError,
    SkippedErrors,
    SkippedErrorsExceeded,
    SourceError,
    SyncError,
)
from .user import InvalidExternalIdError, User, compute_localpart

__all__ = [
    "EncodingInvariantError",
    "ExternalIdEncoding",
    "InvalidExternalIdError",
    "MergeInvariantError",
    "PlatformError",
    "SkippedErrors",
    "SkippedErrorsExceeded",
    "SourceError",
    "SyncError",
    "User",
    "classify_external_id",
    "compute_localpart",
    "convert_external_id",
    "convert_user_external_id",
    "detect_population_encoding",
]
