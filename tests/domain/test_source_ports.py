from __future__ import annotations

import logging
from pathlib import Path

import pytest

from dirsync.adapters.csv import CsvSource
from dirsync.config import CsvSourceConfig
from dirsync.domain.ports import DirectorySource, IdentityDirectory, sort_and_deduplicate
from tests.helpers.users import FakeDirectory, make_user


def test_sort_and_deduplicate_orders_by_external_id() -> None:
    users = [make_user("c"), make_user("a"), make_user("b")]

    ordered = sort_and_deduplicate(users)

    assert [user.external_user_id for user in ordered] == ["61", "62", "63"]


def test_sort_and_deduplicate_keeps_first_record(caplog: pytest.LogCaptureFixture) -> None:
    first = make_user("a", first_name="First")
    second = make_user("a", first_name="Second")

    with caplog.at_level(logging.WARNING):
        ordered = sort_and_deduplicate([first, make_user("b"), second])

    assert [user.first_name for user in ordered] == ["First", "Jane"]
    assert "duplicate" in caplog.text


def test_fake_directory_satisfies_port() -> None:
    assert isinstance(FakeDirectory(), IdentityDirectory)


def test_csv_source_satisfies_port(tmp_path: Path) -> None:
    source = CsvSource(CsvSourceConfig(file_path=tmp_path / "users.csv"))

    assert isinstance(source, DirectorySource)
