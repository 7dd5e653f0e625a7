"""Zitadel-backed implementation of the identity directory port."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx

from dirsync.adapters.http_resilience import RateLimit, ResilienceConfig, ResilientClient
from dirsync.config import ConfigurationError, FeatureFlag
from dirsync.domain.errors import PlatformError

from .schema import CreateUserResponse, ErrorResponse, ListMetadataResponse, ListUsersResponse
from .translator import (
    LOCALPART_KEY,
    PREFERRED_USERNAME_KEY,
    UserRequestOptions,
    build_create_request,
    build_grant_request,
    build_list_request,
    build_metadata_request,
    build_update_request,
    decode_metadata,
    parse_platform_user,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from pathlib import Path
    from types import TracebackType

    from dirsync.config import Config
    from dirsync.domain.ports.directory import PlatformUser
    from dirsync.domain.user import User

    from .schema import UserPayload

log = getLogger(__name__)

USER_ROLE: Final[str] = "User"
PAGE_SIZE: Final[int] = 100
METADATA_PAGE_SIZE: Final[int] = 100
ORG_HEADER: Final[str] = "x-zitadel-orgid"


def read_access_token(path: Path) -> str:
    """Read the service user's personal access token from ``path``."""

    try:
        token = path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigurationError(f"Failed to read Zitadel key file {path}: {exc}") from exc
    if not token:
        raise ConfigurationError(f"Zitadel key file {path} is empty")
    return token


def _default_resilience_config(config: Config, token: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="zitadel",
        base_url=config.zitadel.url,
        timeout_seconds=config.zitadel.timeout_seconds,
        ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
        default_headers={
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        },
    )


@dataclass(slots=True)
class ZitadelDirectory:
    """Users of one Zitadel organization, addressed by their nick name.

    The nick name carries the external user id, so listing by nick name
    yields users in external id order.
    """

    client: ResilientClient
    options: UserRequestOptions
    project_id: str
    dry_run: bool = False
    page_size: int = PAGE_SIZE

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ZitadelDirectory:
        token = read_access_token(config.zitadel.key_file)
        idp_id = None
        if config.is_enabled(FeatureFlag.SSO_LOGIN):
            if config.zitadel.idp_id is None:
                raise ConfigurationError("The `sso_login` feature requires `zitadel.idp_id`")
            idp_id = config.zitadel.idp_id
        options = UserRequestOptions(
            organization_id=config.zitadel.organization_id,
            idp_id=idp_id,
            verify_email=config.is_enabled(FeatureFlag.VERIFY_EMAIL),
            verify_phone=config.is_enabled(FeatureFlag.VERIFY_PHONE),
        )
        client = ResilientClient(_default_resilience_config(config, token), transport=transport)
        return cls(
            client=client,
            options=options,
            project_id=config.zitadel.project_id,
            dry_run=config.is_enabled(FeatureFlag.DRY_RUN),
        )

    async def __aenter__(self) -> ZitadelDirectory:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.client.aclose()

    # Reading

    async def list_users(self, *, include_unlinked: bool = False) -> AsyncIterator[PlatformUser]:
        async for platform_user in self._iter_users((), require_metadata=not include_unlinked):
            yield platform_user

    async def get_users_by_email(self, emails: Iterable[str]) -> AsyncIterator[PlatformUser]:
        pending = [email for email in emails if email]
        # An empty email filter would match every user
        for start in range(0, len(pending), self.page_size):
            async for platform_user in self._iter_users(pending[start : start + self.page_size]):
                yield platform_user

    async def get_users_sample(self, size: int) -> list[User]:
        page = await self._list_page(offset=0, limit=size, emails=())
        sample: list[User] = []
        for payload in page.result:
            platform_user = await self._to_platform_user(payload)
            if platform_user is not None:
                sample.append(platform_user.user)
        return sample

    async def _iter_users(
        self,
        emails: Iterable[str],
        *,
        require_metadata: bool = True,
    ) -> AsyncIterator[PlatformUser]:
        # Every page is read before the first user is yielded; callers mutate
        # users while consuming the listing.
        payloads = await self._list_all(list(emails))
        for payload in payloads:
            platform_user = await self._to_platform_user(
                payload, require_metadata=require_metadata
            )
            if platform_user is not None:
                yield platform_user

    async def _list_all(self, emails: list[str]) -> list[UserPayload]:
        payloads: list[UserPayload] = []
        while True:
            page = await self._list_page(offset=len(payloads), limit=self.page_size, emails=emails)
            payloads.extend(page.result)
            if not page.result or len(payloads) >= page.details.total_result:
                log.debug("Listed %s platform users", len(payloads))
                return payloads

    async def _list_page(
        self,
        *,
        offset: int,
        limit: int,
        emails: Iterable[str],
    ) -> ListUsersResponse:
        body = build_list_request(
            organization_id=self.options.organization_id,
            offset=offset,
            limit=limit,
            emails=emails,
        )
        response = await self._request("POST", "/v2/users", action="list users", json=body)
        return ListUsersResponse.model_validate(response.json())

    async def _to_platform_user(
        self,
        payload: UserPayload,
        *,
        require_metadata: bool = True,
    ) -> PlatformUser | None:
        if payload.human is None:
            return parse_platform_user(payload, {})
        response = await self._request(
            "POST",
            f"/management/v1/users/{payload.user_id}/metadata/_search",
            action=f"list metadata of {payload.user_id!r}",
            json={"query": {"offset": "0", "limit": METADATA_PAGE_SIZE}},
            org_scoped=True,
        )
        metadata = ListMetadataResponse.model_validate(response.json())
        return parse_platform_user(
            payload, decode_metadata(metadata.result), require_metadata=require_metadata
        )

    # Mutations

    async def import_user(self, user: User) -> None:
        if self.dry_run:
            log.info("Dry run: skipping import of %r", user)
            return

        response = await self._request(
            "POST",
            "/v2/users/human",
            action=f"create user {user.external_user_id!r}",
            json=build_create_request(user, self.options),
        )
        platform_id = CreateUserResponse.model_validate(response.json()).user_id

        if user.preferred_username is not None:
            await self._set_metadata(platform_id, PREFERRED_USERNAME_KEY, user.preferred_username)
        if user.localpart is not None:
            await self._set_metadata(platform_id, LOCALPART_KEY, user.localpart)

        await self._request(
            "POST",
            f"/management/v1/users/{platform_id}/grants",
            action=f"grant project role to {platform_id!r}",
            json=build_grant_request(self.project_id, USER_ROLE),
            org_scoped=True,
        )
        log.info("Imported user %r as %r", user, platform_id)

    async def update_user(self, platform_id: str, old: User, new: User) -> None:
        # A localpart is written once, for users created outside a sync
        install_localpart = old.localpart is None and new.localpart is not None
        if not install_localpart and old.localpart != new.localpart:
            log.warning(
                "Localpart of platform user %r changed from %r to %r; it is not updated",
                platform_id,
                old.localpart,
                new.localpart,
            )

        if self.dry_run:
            log.info("Dry run: skipping update of %r to %r", old, new)
            return

        body = build_update_request(old, new, self.options)
        if body:
            await self._request(
                "PUT",
                f"/v2/users/human/{platform_id}",
                action=f"update user {platform_id!r}",
                json=body,
            )
        if old.phone and not new.phone:
            await self._request(
                "DELETE",
                f"/v2/users/{platform_id}/phone",
                action=f"remove phone of user {platform_id!r}",
            )
        if new.preferred_username is not None and old.preferred_username != new.preferred_username:
            await self._set_metadata(platform_id, PREFERRED_USERNAME_KEY, new.preferred_username)
        if install_localpart:
            await self._set_metadata(platform_id, LOCALPART_KEY, str(new.localpart))
        log.info("Updated platform user %r", platform_id)

    async def delete_user(self, platform_id: str) -> None:
        if self.dry_run:
            log.info("Dry run: skipping deletion of platform user %r", platform_id)
            return

        await self._request(
            "DELETE",
            f"/v2/users/{platform_id}",
            action=f"delete user {platform_id!r}",
        )
        log.info("Deleted platform user %r", platform_id)

    async def _set_metadata(self, platform_id: str, key: str, value: str) -> None:
        await self._request(
            "POST",
            f"/management/v1/users/{platform_id}/metadata/{key}",
            action=f"set {key} metadata of {platform_id!r}",
            json=build_metadata_request(value),
            org_scoped=True,
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        action: str,
        json: object = None,
        org_scoped: bool = False,
    ) -> httpx.Response:
        headers = {ORG_HEADER: self.options.organization_id} if org_scoped else None
        try:
            response = await self.client.request(method, url, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise PlatformError(f"Failed to {action}: {exc}") from exc

        if response.is_error:
            raise PlatformError(
                f"Failed to {action}: HTTP {response.status_code} {_error_message(response)}",
                status_code=response.status_code,
            )
        return response


def _error_message(response: httpx.Response) -> str:
    try:
        return ErrorResponse.model_validate(response.json()).message
    except ValueError:
        return response.text
