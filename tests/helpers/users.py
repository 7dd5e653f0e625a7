"""Reusable fakes and helpers for user reconciliation tests."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from dirsync.domain.errors import PlatformError
from dirsync.domain.ports.directory import IdentityDirectory, PlatformUser
from dirsync.domain.user import User, compute_localpart

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable


def make_user(
    raw_id: str = "user",
    *,
    first_name: str = "Jane",
    last_name: str = "Doe",
    email: str | None = None,
    phone: str | None = None,
    enabled: bool = True,
    preferred_username: str | None = None,
) -> User:
    """Create a source-style user whose id is the hex encoding of ``raw_id``."""

    raw_bytes = raw_id.encode("utf-8")
    return User(
        first_name=first_name,
        last_name=last_name,
        email=email or f"{raw_id}@example.com",
        phone=phone,
        enabled=enabled,
        preferred_username=preferred_username or raw_id,
        external_user_id=raw_bytes.hex(),
        localpart=compute_localpart(raw_bytes),
    )


class FakeDirectory(IdentityDirectory):
    """In-memory implementation of the identity directory port for testing.

    ``fail_on`` lists platform ids (for updates and deletions) or external
    ids (for imports) whose mutation raises ``PlatformError``.
    """

    def __init__(
        self,
        users: Iterable[tuple[str, User]] = (),
        *,
        fail_on: Iterable[str] = (),
    ) -> None:
        self.users: dict[str, User] = dict(users)
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._created = 0

    @classmethod
    def with_users(cls, *users: User, fail_on: Iterable[str] = ()) -> FakeDirectory:
        return cls(((f"p-{user.external_user_id}", user) for user in users), fail_on=fail_on)

    def _sorted(self) -> list[PlatformUser]:
        return [
            PlatformUser(platform_id, user)
            for platform_id, user in sorted(
                self.users.items(), key=lambda item: item[1].external_user_id
            )
        ]

    async def list_users(self, *, include_unlinked: bool = False) -> AsyncIterator[PlatformUser]:
        for platform_user in self._sorted():
            user = platform_user.user
            if include_unlinked or (
                user.localpart is not None and user.preferred_username is not None
            ):
                yield platform_user

    async def get_users_by_email(self, emails: Iterable[str]) -> AsyncIterator[PlatformUser]:
        wanted = {email.lower() for email in emails}
        for platform_user in self._sorted():
            if platform_user.user.email.lower() in wanted:
                yield platform_user

    async def get_users_sample(self, size: int) -> list[User]:
        return [platform_user.user for platform_user in self._sorted()[:size]]

    async def import_user(self, user: User) -> None:
        await self._mutate("import", user.external_user_id)
        self._created += 1
        self.users[f"new-{self._created}"] = user

    async def update_user(self, platform_id: str, old: User, new: User) -> None:
        await self._mutate("update", platform_id)
        self.users[platform_id] = new

    async def delete_user(self, platform_id: str) -> None:
        await self._mutate("delete", platform_id)
        del self.users[platform_id]

    async def _mutate(self, operation: str, key: str) -> None:
        self.calls.append((operation, key))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if key in self.fail_on:
                raise PlatformError(f"{operation} of {key} rejected", status_code=500)
        finally:
            self.in_flight -= 1

    def operations(self, operation: str) -> list[str]:
        return [key for name, key in self.calls if name == operation]
