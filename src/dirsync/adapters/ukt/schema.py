"""Pydantic models for the removed-users endpoint and its token service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, RootModel


class TokenResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None


class RemovedUsersResponse(RootModel[list[str]]):
    """A flat JSON list of email addresses."""
