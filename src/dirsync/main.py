#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import sys
from logging import getLogger
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from dirsync.app import perform_sync, run_link_ids, run_migration
from dirsync.config import (
    ConfigurationError,
    config_path_from_env,
    configure_logging,
    load_config,
    parse_log_level,
)
from dirsync.domain.errors import SkippedErrors

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence
    from types import FrameType

    from dirsync.config import Config

    Command = Callable[..., Awaitable[object]]

log = getLogger(__name__)

def _resolve_command(name: str) -> Command:
    commands: dict[str, Command] = {
        "sync": perform_sync,
        "migrate": run_migration,
        "link-ids": run_link_ids,
    }
    return commands[name]


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise user directories into Zitadel")
    parser.add_argument(
        "--config",
        default=config_path_from_env(),
        help="Path to the YAML configuration file (default: %(default)s)",
    )
    parser.set_defaults(command="sync")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("sync", help="Sync the configured sources into Zitadel (default)")
    commands.add_parser("migrate", help="Rewrite stored external ids into hex")
    commands.add_parser("link-ids", help="Attach source ids to Zitadel users by email")
    return parser.parse_args(list(argv))


def _load(path: str) -> Config:
    config = load_config(path)
    try:
        level = parse_log_level(config.log_level)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    configure_logging(level=level, force=True)
    return config


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging()

    try:
        config = _load(parsed_args.config)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    skipped_errors = SkippedErrors()
    command = _resolve_command(parsed_args.command)
    try:
        asyncio.run(command(config, skipped_errors=skipped_errors))
        skipped_errors.assert_no_errors()
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except Exception:  # noqa: BLE001
        log.exception("Command %r failed", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
