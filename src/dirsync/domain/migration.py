"""One-shot rewrites of stored external ids into canonical hex."""

from __future__ import annotations

from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING

from .concurrency import MAX_CONCURRENCY, for_each_bounded
from .encoding import (
    SAMPLE_SIZE,
    ExternalIdEncoding,
    convert_user_external_id,
    detect_population_encoding,
)
from .errors import EncodingInvariantError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .errors import SkippedErrors
    from .ports.directory import IdentityDirectory, PlatformUser
    from .user import User

log = getLogger(__name__)


@dataclass(slots=True)
class MigrationReport:
    encoding: ExternalIdEncoding
    migrated: int = 0
    unchanged: int = 0
    failed: int = 0

    def __str__(self) -> str:
        return (
            f"encoding={self.encoding}, migrated={self.migrated}, "
            f"unchanged={self.unchanged}, failed={self.failed}"
        )


async def detect_directory_encoding(
    directory: IdentityDirectory,
    *,
    sample_size: int = SAMPLE_SIZE,
) -> ExternalIdEncoding:
    """Sample the platform and infer how its external ids are encoded."""

    sample = await directory.get_users_sample(sample_size)
    encoding = detect_population_encoding(user.external_user_id for user in sample)
    log.info("Detected external id encoding %s from %s sampled users", encoding, len(sample))
    return encoding


async def migrate_external_ids(
    directory: IdentityDirectory,
    *,
    skipped_errors: SkippedErrors,
    sample_size: int = SAMPLE_SIZE,
    concurrency: int = MAX_CONCURRENCY,
) -> MigrationReport:
    """Rewrite every platform user's external id into canonical hex.

    Users whose id is already canonical are left alone, so running the
    migration again is a no-op.
    """

    encoding = await detect_directory_encoding(directory, sample_size=sample_size)
    report = MigrationReport(encoding=encoding)

    async def migrate(platform_user: PlatformUser) -> None:
        await _rewrite_external_id(directory, platform_user, encoding, report, skipped_errors)

    await for_each_bounded(directory.list_users(), migrate, limit=concurrency)

    log.info("Migration completed: %s", report)
    return report


async def link_user_ids(
    source_users: Iterable[User],
    directory: IdentityDirectory,
    *,
    skipped_errors: SkippedErrors,
    sample_size: int = SAMPLE_SIZE,
    concurrency: int = MAX_CONCURRENCY,
) -> MigrationReport:
    """Attach source ids to platform users, matching them by email.

    Platform users without an external id receive the id of the source user
    with the same email address, along with its localpart and preferred
    username where the platform has none. Users that already carry an id
    are normalised the same way the migration does.
    """

    by_email: dict[str, User] = {}
    for user in source_users:
        by_email.setdefault(user.email.lower(), user)

    encoding = await detect_directory_encoding(directory, sample_size=sample_size)
    report = MigrationReport(encoding=encoding)

    async def link(platform_user: PlatformUser) -> None:
        existing = platform_user.user
        if existing.external_user_id:
            await _rewrite_external_id(directory, platform_user, encoding, report, skipped_errors)
            return

        match = by_email.get(existing.email.lower())
        if match is None:
            log.warning(
                "No source user matches platform user %r by email, skipping",
                platform_user.platform_id,
            )
            report.unchanged += 1
            return

        linked = replace(
            existing,
            external_user_id=match.external_user_id,
            localpart=existing.localpart or match.localpart,
            preferred_username=existing.preferred_username or match.preferred_username,
        )
        try:
            await directory.update_user(platform_user.platform_id, existing, linked)
        except Exception as exc:  # noqa: BLE001
            skipped_errors.notify(
                f"Failed to link platform user {platform_user.platform_id!r}: {exc}"
            )
            report.failed += 1
            return
        log.info("Linked platform user %r to %r", platform_user.platform_id, linked)
        report.migrated += 1

    await for_each_bounded(directory.list_users(include_unlinked=True), link, limit=concurrency)

    log.info("ID linking completed: %s", report)
    return report


async def _rewrite_external_id(
    directory: IdentityDirectory,
    platform_user: PlatformUser,
    encoding: ExternalIdEncoding,
    report: MigrationReport,
    skipped_errors: SkippedErrors,
) -> None:
    user = platform_user.user
    try:
        migrated = convert_user_external_id(user, encoding)
        if migrated == user:
            report.unchanged += 1
            return
        await directory.update_user(platform_user.platform_id, user, migrated)
    except EncodingInvariantError as exc:
        skipped_errors.notify(
            f"Internal error while migrating platform user {platform_user.platform_id!r}: {exc}"
        )
        report.failed += 1
        return
    except Exception as exc:  # noqa: BLE001
        skipped_errors.notify(
            f"Failed to migrate external id of platform user {platform_user.platform_id!r}: {exc}"
        )
        report.failed += 1
        return

    log.info("Migrated %r to %r", user, migrated)
    report.migrated += 1
