"""Application orchestration entry points."""

from __future__ import annotations

from contextlib import asynccontextmanager
from logging import getLogger
from typing import TYPE_CHECKING

from dirsync.adapters.csv import CsvSource
from dirsync.adapters.ldap import LdapSource
from dirsync.adapters.ukt import UktSource
from dirsync.adapters.zitadel import ZitadelDirectory
from dirsync.config import ConfigurationError, FeatureFlag
from dirsync.domain.migration import MigrationReport, link_user_ids, migrate_external_ids
from dirsync.domain.reconciliation import (
    SyncReport,
    delete_users_by_email,
    disable_users,
    sync_users,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from dirsync.config import Config
    from dirsync.domain.errors import SkippedErrors
    from dirsync.domain.ports import DirectorySource, IdentityDirectory, RemovedUserSource

log = getLogger(__name__)


def build_directory_source(config: Config) -> DirectorySource | None:
    """Return the configured LDAP or CSV source, if any."""

    sources = config.sources
    if sources.ldap is not None:
        return LdapSource(sources.ldap)
    if sources.csv is not None:
        return CsvSource(
            sources.csv,
            plain_localpart=config.is_enabled(FeatureFlag.PLAIN_LOCALPART),
        )
    return None


def build_removed_user_source(config: Config) -> RemovedUserSource | None:
    if config.sources.ukt is not None:
        return UktSource(config.sources.ukt)
    return None


@asynccontextmanager
async def _open_directory(
    config: Config,
    directory: IdentityDirectory | None,
) -> AsyncIterator[IdentityDirectory]:
    if directory is not None:
        yield directory
        return
    async with ZitadelDirectory.from_config(config) as zitadel:
        yield zitadel


async def perform_sync(
    config: Config,
    *,
    skipped_errors: SkippedErrors,
    directory: IdentityDirectory | None = None,
    source: DirectorySource | None = None,
    removed_source: RemovedUserSource | None = None,
) -> SyncReport:
    """Run one sync against every configured source.

    The removed-users feed is applied first; the LDAP or CSV source then
    drives a full or deactivate-only sync. A source that cannot be read
    aborts the run with ``SourceError``.
    """

    effective_source = source or build_directory_source(config)
    effective_removed = removed_source or build_removed_user_source(config)
    if effective_source is None and effective_removed is None:
        raise ConfigurationError("At least one of the `ldap`, `csv` or `ukt` sources is required")

    if config.is_enabled(FeatureFlag.DRY_RUN):
        log.warning("Dry run enabled, no changes will be written")

    report = SyncReport()
    async with _open_directory(config, directory) as target:
        if effective_removed is not None:
            log.info("Fetching removed users from %s", effective_removed.name)
            emails = await effective_removed.get_removed_user_emails()
            report = await delete_users_by_email(emails, target, skipped_errors=skipped_errors)

        if effective_source is not None:
            log.info("Fetching users from %s", effective_source.name)
            users = await effective_source.get_sorted_users()
            if config.is_enabled(FeatureFlag.DEACTIVATE_ONLY):
                directory_report = await disable_users(
                    users, target, skipped_errors=skipped_errors
                )
            else:
                directory_report = await sync_users(users, target, skipped_errors=skipped_errors)
            report = _combine(report, directory_report)

    log.info("Finished sync: %s (%s skipped errors)", report, skipped_errors.count)
    return report


async def run_migration(
    config: Config,
    *,
    skipped_errors: SkippedErrors,
    directory: IdentityDirectory | None = None,
) -> MigrationReport:
    """Rewrite every stored external id into canonical hex."""

    async with _open_directory(config, directory) as target:
        return await migrate_external_ids(target, skipped_errors=skipped_errors)


async def run_link_ids(
    config: Config,
    *,
    skipped_errors: SkippedErrors,
    directory: IdentityDirectory | None = None,
    source: DirectorySource | None = None,
) -> MigrationReport:
    """Attach source ids to platform users created without one."""

    effective_source = source or build_directory_source(config)
    if effective_source is None:
        raise ConfigurationError("Linking ids requires an `ldap` or `csv` source")

    users = await effective_source.get_sorted_users()
    async with _open_directory(config, directory) as target:
        return await link_user_ids(users, target, skipped_errors=skipped_errors)


def _combine(left: SyncReport, right: SyncReport) -> SyncReport:
    return SyncReport(
        imported=left.imported + right.imported,
        updated=left.updated + right.updated,
        deleted=left.deleted + right.deleted,
        unchanged=left.unchanged + right.unchanged,
        failed=left.failed + right.failed,
    )
