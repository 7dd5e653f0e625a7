"""Application configuration helpers."""

from __future__ import annotations

from dirsync.common.logging import configure_logging, parse_log_level

from .env import config_path_from_env, env_overrides
from .errors import ConfigurationError, MissingConfigurationError
from .settings import Config, FeatureFlag, load_config
from .sources import (
    CsvSourceConfig,
    LdapAttribute,
    LdapAttributesMapping,
    LdapSourceConfig,
    LdapTlsConfig,
    SourcesConfig,
    UktSourceConfig,
)
from .zitadel import ZitadelConfig

__all__ = [
    "Config",
    "ConfigurationError",
    "CsvSourceConfig",
    "FeatureFlag",
    "LdapAttribute",
    "LdapAttributesMapping",
    "LdapSourceConfig",
    "LdapTlsConfig",
    "MissingConfigurationError",
    "SourcesConfig",
    "UktSourceConfig",
    "ZitadelConfig",
    "config_path_from_env",
    "configure_logging",
    "env_overrides",
    "load_config",
    "parse_log_level",
]
