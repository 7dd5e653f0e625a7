"""CSV file source."""

from __future__ import annotations

import asyncio
import csv
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from dirsync.domain.errors import SourceError
from dirsync.domain.ports.sources import sort_and_deduplicate
from dirsync.domain.user import User, compute_localpart

if TYPE_CHECKING:
    from collections.abc import Mapping

    from dirsync.config import CsvSourceConfig

log = getLogger(__name__)

CSV_COLUMNS: Final[tuple[str, ...]] = ("email", "first_name", "last_name", "phone")


class CsvRowError(ValueError):
    """Raised for a row that cannot be turned into a user."""


def parse_row(row: Mapping[str, str | None], *, plain_localpart: bool = False) -> User:
    """Turn one CSV record into a user keyed by the hex-encoded email."""

    values: dict[str, str] = {}
    for column in CSV_COLUMNS:
        value = row.get(column)
        if value is None:
            raise CsvRowError(f"missing column `{column}`")
        values[column] = value.strip()

    email = values["email"]
    if not email:
        raise CsvRowError("empty email")

    raw_id = email.encode("utf-8")
    return User(
        first_name=values["first_name"],
        last_name=values["last_name"],
        email=email,
        phone=values["phone"] or None,
        enabled=True,
        preferred_username=email,
        external_user_id=raw_id.hex(),
        localpart=email if plain_localpart else compute_localpart(raw_id),
    )


@dataclass(slots=True)
class CsvSource:
    config: CsvSourceConfig
    plain_localpart: bool = False
    name: str = "CSV"

    async def get_sorted_users(self) -> list[User]:
        users = await asyncio.to_thread(self._read_users)
        return sort_and_deduplicate(users)

    def _read_users(self) -> list[User]:
        path = self.config.file_path
        users: list[User] = []
        try:
            with path.open(encoding="utf-8", newline="") as handle:
                reader = csv.DictReader(handle)
                for line, row in enumerate(reader, start=2):
                    try:
                        users.append(parse_row(row, plain_localpart=self.plain_localpart))
                    except CsvRowError as exc:
                        log.error("Failed to parse line %s of %s: %s", line, path, exc)
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise SourceError(f"Failed to read CSV file {path}: {exc}") from exc

        log.info("Read %s users from %s", len(users), path)
        return users
