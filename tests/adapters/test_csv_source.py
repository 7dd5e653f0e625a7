from __future__ import annotations

import asyncio
import logging
import textwrap
from typing import TYPE_CHECKING

import pytest

from dirsync.adapters.csv import CsvRowError, CsvSource, parse_row
from dirsync.config import CsvSourceConfig
from dirsync.domain.errors import SourceError
from dirsync.domain.user import compute_localpart

if TYPE_CHECKING:
    from pathlib import Path

USERS_CSV = textwrap.dedent(
    """\
    email,first_name,last_name,phone
    john.doe@example.com,John,Doe,+1111111111
    jane.smith@example.com,Jane,Smith,+2222222222
    alice.johnson@example.com,Alice,Johnson,
    bob.williams@example.com,Bob,Williams,+4444444444
    """
)


def _source(tmp_path: Path, content: str, *, plain_localpart: bool = False) -> CsvSource:
    path = tmp_path / "users.csv"
    path.write_text(content, encoding="utf-8")
    return CsvSource(CsvSourceConfig(file_path=path), plain_localpart=plain_localpart)


def test_get_sorted_users(tmp_path: Path) -> None:
    users = asyncio.run(_source(tmp_path, USERS_CSV).get_sorted_users())

    assert [user.email for user in users] == [
        "alice.johnson@example.com",
        "bob.williams@example.com",
        "jane.smith@example.com",
        "john.doe@example.com",
    ]
    alice = users[0]
    assert alice.first_name == "Alice"
    assert alice.last_name == "Johnson"
    assert alice.phone is None
    assert alice.enabled
    assert alice.preferred_username == "alice.johnson@example.com"
    assert alice.external_user_id == b"alice.johnson@example.com".hex()
    assert alice.localpart == compute_localpart(b"alice.johnson@example.com")
    assert users[1].phone == "+4444444444"


def test_plain_localpart_uses_email(tmp_path: Path) -> None:
    users = asyncio.run(_source(tmp_path, USERS_CSV, plain_localpart=True).get_sorted_users())

    assert all(user.localpart == user.email for user in users)


def test_bad_rows_are_skipped(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    content = "email,first_name,last_name,phone\nshort@example.com,Only\nok@example.com,O,K,\n"

    with caplog.at_level(logging.ERROR):
        users = asyncio.run(_source(tmp_path, content).get_sorted_users())

    assert [user.email for user in users] == ["ok@example.com"]
    assert "line 2" in caplog.text


def test_duplicate_rows_are_dropped(tmp_path: Path) -> None:
    content = USERS_CSV + "john.doe@example.com,Johnny,Doe,\n"

    users = asyncio.run(_source(tmp_path, content).get_sorted_users())

    john = [user for user in users if user.email == "john.doe@example.com"]
    assert len(john) == 1
    assert john[0].first_name == "John"


def test_missing_file_is_a_source_error(tmp_path: Path) -> None:
    source = CsvSource(CsvSourceConfig(file_path=tmp_path / "missing.csv"))

    with pytest.raises(SourceError, match="missing.csv"):
        asyncio.run(source.get_sorted_users())


def test_parse_row_rejects_empty_email() -> None:
    with pytest.raises(CsvRowError, match="empty email"):
        parse_row({"email": " ", "first_name": "A", "last_name": "B", "phone": ""})
