"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

ENV_VAR_PREFIX: Final[str] = "DIRSYNC"
ENV_VAR_SEPARATOR: Final[str] = "__"
ENV_VAR_LIST_SEPARATOR: Final[str] = " "
ENV_VAR_LIST_KEYS: Final[frozenset[str]] = frozenset(
    {"feature_flags", "sources.ldap.attributes.disable_bitmasks"}
)
CONFIG_PATH_ENV_VAR: Final[str] = "DIRSYNC_CONFIG"
DEFAULT_CONFIG_PATH: Final[str] = "config.yaml"


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, object]:
    """Collect ``DIRSYNC__SECTION__KEY`` variables into a nested mapping.

    Keys are lower-cased; known list keys are split on spaces.
    """

    source = os.environ if environ is None else environ
    prefix = f"{ENV_VAR_PREFIX}{ENV_VAR_SEPARATOR}"
    overrides: dict[str, object] = {}
    for name, value in source.items():
        if not name.startswith(prefix):
            continue
        path = [part.lower() for part in name[len(prefix) :].split(ENV_VAR_SEPARATOR) if part]
        if not path:
            continue
        dotted = ".".join(path)
        parsed: object = value
        if dotted in ENV_VAR_LIST_KEYS:
            parsed = [item for item in value.split(ENV_VAR_LIST_SEPARATOR) if item]
        _set_nested(overrides, path, parsed)
    return overrides


def config_path_from_env() -> str:
    return os.getenv(CONFIG_PATH_ENV_VAR) or DEFAULT_CONFIG_PATH


def _set_nested(target: dict[str, object], path: list[str], value: object) -> None:
    node = target
    for key in path[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child  # pyright: ignore[reportUnknownVariableType]
    node[path[-1]] = value
