"""Source for users removed upstream, published as a daily email list."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from dirsync.adapters.http_resilience import ResilienceConfig, ResilientClient
from dirsync.domain.errors import SourceError

from .schema import RemovedUsersResponse, TokenResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from dirsync.config import UktSourceConfig

log = getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 30.0


def _default_resilience_config() -> ResilienceConfig:
    return ResilienceConfig(name="ukt", timeout_seconds=_DEFAULT_TIMEOUT_SECONDS)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class UktSource:
    config: UktSourceConfig
    name: str = "UKT"
    resilience: ResilienceConfig = field(default_factory=_default_resilience_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    today: Callable[[], date] = field(default=date.today)

    async def get_removed_user_emails(self) -> list[str]:
        async with self.client_factory(self.resilience) as client:
            try:
                token = await self._fetch_token(client)
                emails = await self._fetch_emails(client, token)
            except (httpx.HTTPError, ValueError) as exc:
                raise SourceError(f"Failed to query removed users from {self.name}: {exc}") from exc

        log.info("%s reported %s removed users", self.name, len(emails))
        return emails

    async def _fetch_token(self, client: ResilientClient) -> str:
        response = await client.post(
            self.config.oauth2_url,
            data={
                "grant_type": self.config.grant_type,
                "scope": self.config.scope,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            },
        )
        response.raise_for_status()
        return TokenResponse.model_validate(response.json()).access_token

    async def _fetch_emails(self, client: ResilientClient, token: str) -> list[str]:
        response = await client.get(
            self.config.endpoint_url,
            params={"date": self.today().strftime("%Y%m%d")},
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        payload = RemovedUsersResponse.model_validate(response.json())
        return [email.strip() for email in payload.root if email.strip()]
