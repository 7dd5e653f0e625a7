"""Error types and the per-run tally of skipped failures."""

from __future__ import annotations

import threading
from logging import getLogger

log = getLogger(__name__)


class SyncError(RuntimeError):
    """Base class for errors raised by the sync core and its collaborators."""


class SourceError(SyncError):
    """Raised when a directory source cannot produce its user list at all."""


class PlatformError(SyncError):
    """Raised when a single mutation against the identity platform fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EncodingInvariantError(SyncError):
    """Raised when identifier classification and conversion disagree.

    Indicates a bug in the codec rather than bad input data.
    """


class MergeInvariantError(SyncError):
    """Raised when two merge keys cannot be ordered against each other."""


class SkippedErrorsExceeded(SyncError):
    """Raised at the end of a run in which failures were skipped."""

    def __init__(self, count: int) -> None:
        super().__init__(f"{count} errors occurred and were skipped")
        self.count = count


class SkippedErrors:
    """Counts non-fatal failures for one run.

    One instance is created per run and handed to every component that may
    fail without aborting. The counter only ever grows.
    """

    def __init__(self) -> None:
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def notify(self, message: str) -> None:
        """Record a skipped failure and log it."""

        with self._lock:
            self._count += 1
        log.error(message)

    def assert_no_errors(self) -> None:
        """Raise :class:`SkippedErrorsExceeded` if any failure was recorded."""

        count = self.count
        if count:
            raise SkippedErrorsExceeded(count)

    def __repr__(self) -> str:
        return f"SkippedErrors(count={self.count})"
