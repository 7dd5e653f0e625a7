"""Ports for reading the source of truth."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dirsync.domain.user import User

log = getLogger(__name__)


@runtime_checkable
class DirectorySource(Protocol):
    """A source of user records, e.g. an LDAP server or a CSV file."""

    name: str

    async def get_sorted_users(self) -> list[User]:
        """Return all users sorted ascending by external id, without duplicates.

        Raises ``SourceError`` if the underlying read fails.
        """
        ...


@runtime_checkable
class RemovedUserSource(Protocol):
    """A feed listing email addresses of users removed upstream."""

    name: str

    async def get_removed_user_emails(self) -> list[str]: ...


def sort_and_deduplicate(users: Iterable[User]) -> list[User]:
    """Sort users by external id and keep the first record for each id."""

    ordered = sorted(users, key=lambda user: user.external_user_id)
    unique: list[User] = []
    for user in ordered:
        if unique and unique[-1].external_user_id == user.external_user_id:
            log.warning("Dropping duplicate source user %r", user)
            continue
        unique.append(user)
    return unique


__all__ = ["DirectorySource", "RemovedUserSource", "sort_and_deduplicate"]
