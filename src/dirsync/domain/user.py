"""Canonical, source-agnostic user record."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Final
from uuid import UUID, uuid5

LOCALPART_NAMESPACE: Final[UUID] = UUID("d9979cff-abee-4666-bc88-1ec45a843fb8")


class InvalidExternalIdError(ValueError):
    """Raised when an external user id is not valid hex."""


def compute_localpart(raw_id: bytes) -> str:
    """Derive the stable platform localpart from the raw source id bytes."""

    return str(uuid5(LOCALPART_NAMESPACE, raw_id))


@dataclass(frozen=True, slots=True, kw_only=True)
class User:
    """A directory entry as seen by the reconciliation core.

    ``external_user_id`` holds the lowercase hex encoding of the source id.
    Equality covers every field; two users compare equal only if nothing
    would have to be written to bring one in line with the other.
    """

    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    enabled: bool = True
    preferred_username: str | None = None
    external_user_id: str
    localpart: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.last_name}, {self.first_name}"

    def external_id_bytes(self) -> bytes:
        # Users read back from the platform only carry the hex form, so the
        # raw bytes are always recovered by decoding.
        try:
            return bytes.fromhex(self.external_user_id)
        except ValueError as exc:
            raise InvalidExternalIdError(
                f"Invalid external user id: {self.external_user_id!r}"
            ) from exc

    def with_external_id(self, external_user_id: str) -> User:
        return replace(self, external_user_id=external_user_id)

    def __repr__(self) -> str:
        return (
            "User(first_name='***', last_name='***', email='***', phone='***', "
            f"preferred_username='***', external_user_id={self.external_user_id!r}, "
            f"localpart={self.localpart!r}, enabled={self.enabled!r})"
        )
