"""Directory to Zitadel user reconciliation."""

from __future__ import annotations

__version__ = "0.10.1"
