"""LDAP directory source built on ldap3."""

from __future__ import annotations

import asyncio
import ssl
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import urlparse

import ldap3
from ldap3.core.exceptions import LDAPException

from dirsync.domain.errors import SourceError
from dirsync.domain.ports.sources import sort_and_deduplicate

from .translator import LdapEntry, LdapEntryError, parse_user

if TYPE_CHECKING:
    from collections.abc import Callable

    from dirsync.config import LdapSourceConfig, LdapTlsConfig
    from dirsync.domain.user import User

log = getLogger(__name__)

PAGE_SIZE: Final[int] = 500
SEARCH_RESULT_ENTRY: Final[str] = "searchResEntry"


def build_tls(config: LdapTlsConfig | None) -> ldap3.Tls:
    if config is None:
        return ldap3.Tls(validate=ssl.CERT_REQUIRED)
    return ldap3.Tls(
        local_private_key_file=str(config.client_key) if config.client_key else None,
        local_certificate_file=(
            str(config.client_certificate) if config.client_certificate else None
        ),
        ca_certs_file=str(config.server_certificate) if config.server_certificate else None,
        validate=ssl.CERT_NONE if config.danger_disable_tls_verify else ssl.CERT_REQUIRED,
    )


def open_connection(config: LdapSourceConfig) -> ldap3.Connection:
    """Connect and bind to the configured server.

    ``ldaps`` URLs connect over TLS; StartTLS is used on plain URLs only if
    requested.
    """

    use_ssl = urlparse(config.url).scheme == "ldaps"
    start_tls = config.tls is not None and config.tls.danger_use_start_tls
    tls = build_tls(config.tls) if use_ssl or start_tls else None

    server = ldap3.Server(
        config.url,
        use_ssl=use_ssl,
        tls=tls,
        connect_timeout=config.timeout,
        get_info=ldap3.NONE,
    )
    connection = ldap3.Connection(
        server,
        user=config.bind_dn,
        password=config.bind_password,
        receive_timeout=config.timeout,
        read_only=True,
        raise_exceptions=True,
    )
    connection.open()
    if start_tls:
        connection.start_tls()
    connection.bind()
    return connection


@dataclass(slots=True)
class LdapSource:
    config: LdapSourceConfig
    name: str = "LDAP"
    connection_factory: Callable[[LdapSourceConfig], ldap3.Connection] = field(
        default=open_connection
    )

    async def get_sorted_users(self) -> list[User]:
        entries = await asyncio.to_thread(self._search)

        users: list[User] = []
        for entry in entries:
            try:
                users.append(parse_user(entry, self.config.attributes))
            except LdapEntryError as exc:
                log.error("Skipping LDAP entry %r: %s", entry.dn, exc)

        log.info("Read %s users from LDAP (%s entries)", len(users), len(entries))
        return sort_and_deduplicate(users)

    def _search(self) -> list[LdapEntry]:
        try:
            connection = self.connection_factory(self.config)
            try:
                results: list[dict[str, Any]] = connection.extend.standard.paged_search(
                    search_base=self.config.base_dn,
                    search_filter=self.config.user_filter,
                    search_scope=ldap3.SUBTREE,
                    attributes=self.config.attribute_list(),
                    paged_size=PAGE_SIZE,
                    generator=False,
                )
            finally:
                connection.unbind()
        except (LDAPException, OSError) as exc:
            raise SourceError(f"LDAP search against {self.config.url} failed: {exc}") from exc

        return [
            LdapEntry.from_raw(result["dn"], result.get("raw_attributes", {}))
            for result in results
            if result.get("type") == SEARCH_RESULT_ENTRY
        ]
