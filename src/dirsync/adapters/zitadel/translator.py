"""Translate between Zitadel payloads and domain users."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from dirsync.domain.ports.directory import PlatformUser
from dirsync.domain.user import User

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .schema import MetadataEntry, UserPayload

log = getLogger(__name__)

LOCALPART_KEY: Final[str] = "localpart"
PREFERRED_USERNAME_KEY: Final[str] = "preferred_username"
NICK_NAME_SORTING_COLUMN: Final[str] = "USER_FIELD_NAME_NICK_NAME"


@dataclass(frozen=True, slots=True)
class UserRequestOptions:
    """Per-run settings that shape create and update requests."""

    organization_id: str
    idp_id: str | None = None
    verify_email: bool = False
    verify_phone: bool = False


def encode_metadata_value(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def decode_metadata(entries: Iterable[MetadataEntry]) -> dict[str, str]:
    decoded: dict[str, str] = {}
    for entry in entries:
        try:
            decoded[entry.key] = base64.b64decode(entry.value, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            log.warning("Ignoring undecodable metadata value for key %r", entry.key)
    return decoded


def parse_platform_user(
    payload: UserPayload,
    metadata: dict[str, str],
    *,
    require_metadata: bool = True,
) -> PlatformUser | None:
    """Build the domain view of a platform user.

    Returns ``None`` for machine users. Users lacking the localpart or
    preferred username metadata were not created by a sync; they are
    skipped unless ``require_metadata`` is false, in which case the missing
    fields are ``None``.
    """

    human = payload.human
    if human is None:
        log.warning("Skipping non-human platform user %r", payload.user_id)
        return None

    localpart = metadata.get(LOCALPART_KEY)
    preferred_username = metadata.get(PREFERRED_USERNAME_KEY)
    if require_metadata and (localpart is None or preferred_username is None):
        log.warning(
            "Skipping platform user %r without localpart or preferred username metadata",
            payload.user_id,
        )
        return None

    user = User(
        first_name=human.profile.given_name,
        last_name=human.profile.family_name,
        email=human.email.email,
        phone=human.phone.phone,
        enabled=True,
        preferred_username=preferred_username,
        external_user_id=human.profile.nick_name or "",
        localpart=localpart,
    )
    return PlatformUser(platform_id=payload.user_id, user=user)


def build_list_request(
    *,
    organization_id: str,
    offset: int,
    limit: int,
    emails: Iterable[str] = (),
) -> dict[str, object]:
    queries: list[dict[str, object]] = [
        {"organizationIdQuery": {"organizationId": organization_id}},
        {"typeQuery": {"type": "TYPE_HUMAN"}},
    ]
    email_queries = [
        {"emailQuery": {"emailAddress": email, "method": "TEXT_QUERY_METHOD_EQUALS_IGNORE_CASE"}}
        for email in emails
    ]
    if email_queries:
        queries.append({"orQuery": {"queries": email_queries}})
    return {
        "query": {"offset": str(offset), "limit": limit, "asc": True},
        "sortingColumn": NICK_NAME_SORTING_COLUMN,
        "queries": queries,
    }


def _profile(user: User) -> dict[str, object]:
    return {
        "givenName": user.first_name,
        "familyName": user.last_name,
        "nickName": user.external_user_id,
        "displayName": user.display_name,
    }


def _email(user: User, options: UserRequestOptions) -> dict[str, object]:
    return {"email": user.email, "isVerified": not options.verify_email}


def _phone(phone: str, options: UserRequestOptions) -> dict[str, object]:
    return {"phone": phone, "isVerified": not options.verify_phone}


def build_create_request(user: User, options: UserRequestOptions) -> dict[str, object]:
    request: dict[str, object] = {
        "username": user.email,
        "organization": {"orgId": options.organization_id},
        "profile": _profile(user),
        "email": _email(user, options),
    }
    if user.localpart:
        request["userId"] = user.localpart
    if user.phone:
        request["phone"] = _phone(user.phone, options)
    if options.idp_id is not None:
        request["idpLinks"] = [
            {
                "idpId": options.idp_id,
                "userId": user.external_user_id,
                "userName": user.display_name,
            }
        ]
    return request


def build_update_request(
    old: User,
    new: User,
    options: UserRequestOptions,
) -> dict[str, object]:
    """Return the update body covering only the aspects that changed.

    A removed phone number cannot be expressed here and must be deleted
    separately.
    """

    request: dict[str, object] = {}
    if (
        old.first_name != new.first_name
        or old.last_name != new.last_name
        or old.external_user_id != new.external_user_id
    ):
        request["profile"] = _profile(new)
    if old.email != new.email:
        request["username"] = new.email
        request["email"] = _email(new, options)
    if new.phone and old.phone != new.phone:
        request["phone"] = _phone(new.phone, options)
    return request


def build_grant_request(project_id: str, role: str) -> dict[str, object]:
    return {"projectId": project_id, "roleKeys": [role]}


def build_metadata_request(value: str) -> dict[str, object]:
    return {"value": encode_metadata_value(value)}


__all__ = [
    "LOCALPART_KEY",
    "PREFERRED_USERNAME_KEY",
    "UserRequestOptions",
    "build_create_request",
    "build_grant_request",
    "build_list_request",
    "build_metadata_request",
    "build_update_request",
    "decode_metadata",
    "encode_metadata_value",
    "parse_platform_user",
]
