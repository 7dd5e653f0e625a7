from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from dirsync.config import Config
from dirsync.domain.errors import SkippedErrors

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def skipped_errors() -> SkippedErrors:
    return SkippedErrors()


@pytest.fixture
def key_file(tmp_path: Path) -> Path:
    path = tmp_path / "service-user.token"
    path.write_text("test-token\n", encoding="utf-8")
    return path


@pytest.fixture
def make_config(key_file: Path):
    def factory(
        *,
        sources: dict[str, object] | None = None,
        feature_flags: tuple[str, ...] = (),
    ) -> Config:
        return Config.model_validate(
            {
                "zitadel": {
                    "url": "https://zitadel.example.invalid",
                    "key_file": str(key_file),
                    "organization_id": "org-1",
                    "project_id": "project-1",
                    "idp_id": "idp-1",
                },
                "sources": sources or {},
                "feature_flags": list(feature_flags),
            }
        )

    return factory
