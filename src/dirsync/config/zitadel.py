"""Zitadel connection settings."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 # pydantic resolves annotations at runtime
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, field_validator

ZITADEL_TIMEOUT_SECONDS = 30.0


class ZitadelConfig(BaseModel):
    """Where and as whom to talk to the Zitadel instance."""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    url: str
    key_file: Path
    organization_id: str
    project_id: str
    idp_id: str | None = None
    timeout_seconds: float = ZITADEL_TIMEOUT_SECONDS

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        # "host:443" parses with "host" as the scheme, so check explicitly
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                f"zitadel URL scheme must be `http` or `https`, e.g. `https://{value}`"
            )
        return value.rstrip("/")
