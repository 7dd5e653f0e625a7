"""Translate LDAP search entries into domain users."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dirsync.domain.user import User, compute_localpart

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from dirsync.config import LdapAttribute, LdapAttributesMapping


class LdapEntryError(ValueError):
    """Raised when an entry lacks or mis-encodes a required attribute."""


@dataclass(frozen=True, slots=True)
class LdapEntry:
    """Raw attribute values of one search result, keyed by lower-cased name."""

    dn: str
    attributes: Mapping[str, Sequence[bytes]] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, dn: str, raw_attributes: Mapping[str, Sequence[bytes]]) -> LdapEntry:
        return cls(dn=dn, attributes={key.lower(): values for key, values in raw_attributes.items()})

    def first(self, name: str) -> bytes | None:
        values = self.attributes.get(name.lower())
        if not values:
            return None
        return values[0]


def parse_user(entry: LdapEntry, mapping: LdapAttributesMapping) -> User:
    """Build a user from ``entry`` using the configured attribute mapping."""

    enabled = _parse_enabled(entry, mapping)

    raw_id = _read_value(entry, mapping.user_id)
    id_bytes = raw_id if isinstance(raw_id, bytes) else raw_id.encode("utf-8")
    external_user_id = id_bytes.hex()

    try:
        phone: str | None = _read_string(entry, mapping.phone, external_user_id)
    except LdapEntryError:
        phone = None

    return User(
        first_name=_read_string(entry, mapping.first_name, external_user_id),
        last_name=_read_string(entry, mapping.last_name, external_user_id),
        email=_read_string(entry, mapping.email, external_user_id),
        phone=phone or None,
        enabled=enabled,
        preferred_username=_read_string(entry, mapping.preferred_username, external_user_id),
        external_user_id=external_user_id,
        localpart=compute_localpart(id_bytes),
    )


def _parse_enabled(entry: LdapEntry, mapping: LdapAttributesMapping) -> bool:
    status = _read_value(entry, mapping.status)
    disable_bitmask = mapping.disable_bitmask

    if disable_bitmask:
        return (_status_flags(status) & disable_bitmask) == 0

    if isinstance(status, bytes):
        raise LdapEntryError(f"Binary status without disable_bitmasks for `{entry.dn}`")
    match status:
        case "TRUE":
            return True
        case "FALSE":
            return False
        case _:
            raise LdapEntryError(f"Cannot parse status without disable_bitmasks: {status!r}")


def _status_flags(status: str | bytes) -> int:
    if isinstance(status, bytes):
        # Flags are stored as a big-endian 32 bit integer
        if len(status) != 4:
            raise LdapEntryError(f"Failed to convert {status!r} to a 32 bit flag")
        return int.from_bytes(status, "big", signed=True)
    try:
        return int(status)
    except ValueError as exc:
        raise LdapEntryError(f"Failed to parse status attribute {status!r}") from exc


def _read_value(entry: LdapEntry, attribute: LdapAttribute) -> str | bytes:
    value = entry.first(attribute.name)
    if value is None:
        raise LdapEntryError(f"missing `{attribute}` values for `{entry.dn}`")
    if attribute.is_binary:
        return value
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise LdapEntryError(
            f"Binary value of `{attribute}` for `{entry.dn}` without `is_binary`"
        ) from exc


def _read_string(entry: LdapEntry, attribute: LdapAttribute, user_id: str) -> str:
    value = _read_value(entry, attribute)
    if isinstance(value, bytes):
        raise LdapEntryError(
            f"Binary values are not accepted: attribute `{attribute}` of user `{user_id}`"
        )
    return value
