"""Top-level sync configuration loaded from YAML and the environment."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from .env import env_overrides
from .errors import ConfigurationError, MissingConfigurationError
from .sources import SourcesConfig
from .zitadel import ZitadelConfig

if TYPE_CHECKING:
    from collections.abc import Mapping


class FeatureFlag(StrEnum):
    SSO_LOGIN = "sso_login"
    VERIFY_EMAIL = "verify_email"
    VERIFY_PHONE = "verify_phone"
    DRY_RUN = "dry_run"
    DEACTIVATE_ONLY = "deactivate_only"
    PLAIN_LOCALPART = "plain_localpart"


class Config(BaseModel):
    """Everything a sync run needs to know."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    zitadel: ZitadelConfig
    sources: SourcesConfig
    log_level: str | None = None
    feature_flags: tuple[FeatureFlag, ...] = ()

    def is_enabled(self, flag: FeatureFlag) -> bool:
        return flag in self.feature_flags


def load_config(
    path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Read ``path`` (if it exists) and apply ``DIRSYNC__*`` overrides."""

    data: dict[str, object] = {}
    if path is not None:
        config_path = Path(path)
        if config_path.is_file():
            data = _read_yaml(config_path)

    overrides = env_overrides(environ)
    if not data and not overrides:
        raise MissingConfigurationError(
            f"No configuration found: {path} does not exist and no DIRSYNC__ variables are set"
        )
    _merge(data, overrides)

    try:
        return Config.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def _read_yaml(path: Path) -> dict[str, object]:
    try:
        with path.open(encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Failed to read config file {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return loaded  # pyright: ignore[reportUnknownVariableType]


def _merge(target: dict[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge(current, value)  # pyright: ignore[reportUnknownArgumentType]
        else:
            target[key] = value
