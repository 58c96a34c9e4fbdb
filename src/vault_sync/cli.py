"""Command-line entry point: ``vault-sync``.

Subcommands:

- ``sync PROFILE``: run (or preview) a sync of one profile.
- ``check-password PROFILE``: classify the password against the remote.
- ``init``: write a starter config file.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .config import Config, load_config
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import LoggingConfig, build_config
from .logger import setup_logging
from .sync.engine import build_engine, build_remote_client
from .sync.errors import SyncError
from .sync.password import check_password
from .sync.reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-sync",
        description="Three-way sync of a local folder with a remote store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create a starter config in .vault_sync/config.yml
  vault-sync init

  # Preview what a sync of profile 'notes' would do
  vault-sync sync notes --dry-run

  # Sync with encryption (prefer VAULT_SYNC_PASSWORD over --password)
  VAULT_SYNC_PASSWORD=secret vault-sync sync notes

  # Machine-readable output
  vault-sync sync notes --json
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"vault-sync version {__version__}",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sync_parser = sub.add_parser("sync", help="Synchronize one profile")
    sync_parser.add_argument("profile", help="Sync profile name")
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute decisions without changing anything",
    )
    sync_parser.add_argument(
        "--json", action="store_true", help="Print the report as JSON"
    )
    sync_parser.add_argument(
        "--concurrency",
        type=int,
        help="Max concurrent transfers per level (overrides VAULT_SYNC_CONCURRENCY)",
    )
    _add_common_arguments(sync_parser)

    check_parser = sub.add_parser(
        "check-password", help="Check the password against the remote"
    )
    check_parser.add_argument("profile", help="Sync profile name")
    _add_common_arguments(check_parser)

    init_parser = sub.add_parser("init", help="Create a starter config file")
    init_parser.add_argument(
        "--path", type=Path, help="Where to write the config file"
    )
    return parser


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--password",
        help="Encryption password (overrides VAULT_SYNC_PASSWORD)"
        " (visible in process list -- prefer the env var)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also append logs to this file")


def _resolve(args: argparse.Namespace) -> tuple[Config, LoggingConfig]:
    unified = build_config(load_hierarchical_config())
    profile = unified.get_profile(args.profile)
    config = load_config(
        args.profile,
        profile,
        password=args.password,
        concurrency=getattr(args, "concurrency", None),
        debug=args.debug,
    )
    return config, unified.logging


def _cmd_sync(args: argparse.Namespace, config: Config) -> int:
    engine = build_engine(config.profile, config.profile_name, config.password)
    report = asyncio.run(engine.run(dry_run=args.dry_run))

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    elif report.dry_run:
        print(format_dry_run_preview(report))
    else:
        print(format_sync_report(report))
    return 0 if report.success else 1


def _cmd_check_password(config: Config) -> int:
    remote = build_remote_client(config.profile)
    result = check_password(remote.list_remote_entities(), config.password)
    status = "ok" if result.ok else "failed"
    print(f"Password check {status}: {result.reason.value}")
    return 0 if result.ok else 1


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the chosen command and return its exit code."""
    load_dotenv()
    args = _build_parser().parse_args(argv)

    if args.command == "init":
        setup_logging()
        path = ensure_config(args.path)
        print(f"Config file: {path}")
        return 0

    try:
        config, log_settings = _resolve(args)
    except (KeyError, ValueError, ValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        debug=config.debug,
        log_file=args.log_file or log_settings.file,
        level=log_settings.level,
    )

    try:
        if args.command == "check-password":
            return _cmd_check_password(config)
        return _cmd_sync(args, config)
    except SyncError as exc:
        logger.error("Sync aborted: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
