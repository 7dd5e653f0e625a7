from __future__ import annotations

import logging
import threading

import pytest

from dirsync.domain.errors import SkippedErrors, SkippedErrorsExceeded, SyncError


def test_fresh_tracker_has_no_errors() -> None:
    tracker = SkippedErrors()

    tracker.assert_no_errors()
    assert tracker.count == 0


def test_notify_counts_and_logs(caplog: pytest.LogCaptureFixture) -> None:
    tracker = SkippedErrors()

    with caplog.at_level(logging.ERROR):
        tracker.notify("Failed to import user 'cafe'")
        tracker.notify("Failed to delete user 'beef'")

    assert tracker.count == 2
    assert "Failed to import user 'cafe'" in caplog.text
    assert all(record.levelno == logging.ERROR for record in caplog.records)


def test_assert_no_errors_reports_count() -> None:
    tracker = SkippedErrors()
    tracker.notify("boom")
    tracker.notify("boom")
    tracker.notify("boom")

    with pytest.raises(SkippedErrorsExceeded) as excinfo:
        tracker.assert_no_errors()

    assert str(excinfo.value) == "3 errors occurred and were skipped"
    assert excinfo.value.count == 3
    assert isinstance(excinfo.value, SyncError)


def test_notify_is_safe_across_threads() -> None:
    tracker = SkippedErrors()

    def notify_many() -> None:
        for _ in range(100):
            tracker.notify("boom")

    threads = [threading.Thread(target=notify_many) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert tracker.count == 800
