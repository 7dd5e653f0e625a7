"""Sorted merge-diff between the source of truth and the identity platform.

Both sides are ordered ascending by external user id. Walking them in
lockstep classifies every id as new (import), stale (delete), changed
(update) or already in sync, in a single pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .concurrency import MAX_CONCURRENCY, for_each_bounded
from .errors import MergeInvariantError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterable

    from .errors import SkippedErrors
    from .ports.directory import IdentityDirectory, PlatformUser
    from .user import User

log = getLogger(__name__)


@dataclass(slots=True)
class SyncReport:
    """Counts of the decisions taken during one reconciliation run."""

    imported: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
    failed: int = 0

    def __str__(self) -> str:
        return (
            f"imported={self.imported}, updated={self.updated}, deleted={self.deleted}, "
            f"unchanged={self.unchanged}, failed={self.failed}"
        )


async def sync_users(
    source_users: Iterable[User],
    directory: IdentityDirectory,
    *,
    skipped_errors: SkippedErrors,
) -> SyncReport:
    """Bring the platform in line with ``source_users``.

    Disabled source users are treated as absent, so a matching platform
    user gets deleted. Mutations are issued one at a time in id order.
    """

    pending = iter([user for user in source_users if user.enabled])
    remote = directory.list_users()
    report = SyncReport()

    source_user = next(pending, None)
    platform_user = await _next_platform_user(remote)

    while True:
        log.debug(
            "Comparing users %s and %s",
            source_user.external_user_id if source_user else None,
            platform_user.user.external_user_id if platform_user else None,
        )

        if source_user is None and platform_user is None:
            break

        if source_user is None:
            # Excess platform users are not in the source any more
            await _delete(directory, platform_user, report, skipped_errors)
            platform_user = await _next_platform_user(remote)
            continue

        if platform_user is None:
            # Excess source users are not on the platform yet
            await _import(directory, source_user, report, skipped_errors)
            source_user = next(pending, None)
            continue

        if source_user == platform_user.user:
            report.unchanged += 1
            source_user = next(pending, None)
            platform_user = await _next_platform_user(remote)
            continue

        order = _compare_ids(source_user.external_user_id, platform_user.user.external_user_id)

        if order is None:
            error = MergeInvariantError(
                "Unreachable condition met for users "
                f"{source_user.external_user_id!r} and {platform_user.user.external_user_id!r}"
            )
            skipped_errors.notify(str(error))
            report.failed += 1
            # Both heads advance on purpose; holding them would repeat this branch forever
            source_user = next(pending, None)
            platform_user = await _next_platform_user(remote)
        elif order < 0:
            await _import(directory, source_user, report, skipped_errors)
            source_user = next(pending, None)
        elif order > 0:
            await _delete(directory, platform_user, report, skipped_errors)
            platform_user = await _next_platform_user(remote)
        else:
            await _update(directory, platform_user, source_user, report, skipped_errors)
            source_user = next(pending, None)
            platform_user = await _next_platform_user(remote)

    log.info("Sync completed: %s", report)
    return report


async def disable_users(
    source_users: Iterable[User],
    directory: IdentityDirectory,
    *,
    skipped_errors: SkippedErrors,
) -> SyncReport:
    """Delete platform users that are disabled in the source; nothing else."""

    disabled = iter([user for user in source_users if not user.enabled])
    report = SyncReport()
    source_user = next(disabled, None)

    async for platform_user in directory.list_users():
        platform_id = platform_user.user.external_user_id
        while source_user is not None and source_user.external_user_id < platform_id:
            source_user = next(disabled, None)
        if source_user is None:
            break
        if source_user.external_user_id == platform_id:
            await _delete(directory, platform_user, report, skipped_errors)
            source_user = next(disabled, None)
        else:
            report.unchanged += 1

    log.info("Deactivation sync completed: %s", report)
    return report


async def delete_users_by_email(
    emails: Iterable[str],
    directory: IdentityDirectory,
    *,
    skipped_errors: SkippedErrors,
    concurrency: int = MAX_CONCURRENCY,
) -> SyncReport:
    """Delete every platform user whose email is listed."""

    email_list = list(emails)
    report = SyncReport()
    if not email_list:
        log.info("No removed users reported, nothing to delete")
        return report

    async def delete(platform_user: PlatformUser) -> None:
        await _delete(directory, platform_user, report, skipped_errors)

    await for_each_bounded(
        directory.get_users_by_email(email_list),
        delete,
        limit=concurrency,
    )

    log.info("Deletion by email completed: %s", report)
    return report


def _compare_ids(left: str, right: str) -> int | None:
    try:
        if left < right:
            return -1
        if left > right:
            return 1
        if left == right:
            return 0
    except TypeError:
        return None
    return None


async def _next_platform_user(stream: AsyncIterator[PlatformUser]) -> PlatformUser | None:
    return await anext(stream, None)


async def _import(
    directory: IdentityDirectory,
    user: User,
    report: SyncReport,
    skipped_errors: SkippedErrors,
) -> None:
    if await _attempt(
        lambda: directory.import_user(user),
        f"Failed to import user {user.external_user_id!r}",
        skipped_errors,
    ):
        report.imported += 1
    else:
        report.failed += 1


async def _update(
    directory: IdentityDirectory,
    platform_user: PlatformUser,
    user: User,
    report: SyncReport,
    skipped_errors: SkippedErrors,
) -> None:
    if await _attempt(
        lambda: directory.update_user(platform_user.platform_id, platform_user.user, user),
        f"Failed to update user {user.external_user_id!r}",
        skipped_errors,
    ):
        report.updated += 1
    else:
        report.failed += 1


async def _delete(
    directory: IdentityDirectory,
    platform_user: PlatformUser,
    report: SyncReport,
    skipped_errors: SkippedErrors,
) -> None:
    if await _attempt(
        lambda: directory.delete_user(platform_user.platform_id),
        f"Failed to delete user with platform id {platform_user.platform_id!r}",
        skipped_errors,
    ):
        report.deleted += 1
    else:
        report.failed += 1


async def _attempt(
    mutation: Callable[[], Awaitable[None]],
    message: str,
    skipped_errors: SkippedErrors,
) -> bool:
    try:
        await mutation()
    except Exception as exc:  # noqa: BLE001
        skipped_errors.notify(f"{message}: {exc}")
        return False
    return True
