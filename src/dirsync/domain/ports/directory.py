"""Port for the identity platform holding the managed users."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from dirsync.domain.user import User


class PlatformUser(NamedTuple):
    platform_id: str
    user: User


@runtime_checkable
class IdentityDirectory(Protocol):
    """Read and mutate the users managed on the identity platform.

    Both listing operations yield users sorted ascending by external id and
    page through results transparently. A listing reflects the platform as
    it was when iteration started: mutations made while consuming it neither
    hide nor repeat users. Each mutation either succeeds or raises
    ``PlatformError``; a dry-run implementation may report success without
    changing anything.

    ``list_users`` omits users that were not created by a sync (their
    ``localpart`` or ``preferred_username`` is unknown) unless
    ``include_unlinked`` is set.
    """

    def list_users(self, *, include_unlinked: bool = False) -> AsyncIterator[PlatformUser]: ...

    def get_users_by_email(self, emails: Iterable[str]) -> AsyncIterator[PlatformUser]: ...

    async def get_users_sample(self, size: int) -> list[User]: ...

    async def import_user(self, user: User) -> None: ...

    async def update_user(self, platform_id: str, old: User, new: User) -> None: ...

    async def delete_user(self, platform_id: str) -> None: ...


__all__ = ["IdentityDirectory", "PlatformUser"]
