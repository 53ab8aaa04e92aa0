"""
Command-line interface for the Submission Ledger service.

Provides CLI commands for running and operating the service:
- run: Start the HTTP API server
- show-config: Print the effective configuration with secrets masked
- append: Append one record directly to the ledger (manual backfill)

Usage:
    submission-ledger run [--host HOST] [--port PORT]
    submission-ledger show-config
    submission-ledger append --name NAME --phone PHONE [--linkedin URL]

Environment Variables:
    GITHUB_TOKEN, GITHUB_REPO, GITHUB_FILE_PATH, GITHUB_BRANCH: ledger location
    HOST, PORT: bind address for the API server (default: 0.0.0.0:8080)
    See submission_ledger.config for the full list.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

from submission_ledger.config import (
    AppConfig,
    ConfigError,
    load_config,
    print_config_summary,
    validate_config,
)
from submission_ledger.logging_setup import configure_logging


def _load_valid_config() -> AppConfig | None:
    """Load and validate configuration, reporting problems on stderr."""
    try:
        return validate_config(load_config())
    except (ConfigError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return None


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run the API server.

    Configuration Priority:
        1. CLI arguments (--host, --port)
        2. Environment variables (HOST, PORT, ...)
        3. config/server.ini, then config/server.example.ini
        4. Built-in defaults

    Returns:
        0 on clean shutdown, 1 on configuration error
    """
    cfg = _load_valid_config()
    if cfg is None:
        return 1

    configure_logging(cfg.logging)

    from submission_ledger.api.server import start_server

    try:
        start_server(cfg, host=getattr(args, "host", None), port=getattr(args, "port", None))
    except KeyboardInterrupt:
        print("\nShutting down.")
    return 0


def cmd_show_config(args: argparse.Namespace) -> int:
    """
    Print the effective configuration.

    The summary is printed even when the configuration is invalid, followed
    by the validation error.

    Returns:
        0 if the configuration is valid, 1 otherwise
    """
    try:
        cfg = load_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    print_config_summary(cfg)
    try:
        validate_config(cfg)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    print("Configuration OK.")
    return 0


async def _append_once(cfg: AppConfig, name: str, phone: str, linkedin: str):
    from submission_ledger.ledger import (
        AppendService,
        Submission,
        build_store,
        format_timestamp,
        utc_now,
    )

    record = Submission(
        name=name,
        phone=phone,
        linkedin=linkedin,
        timestamp=format_timestamp(utc_now()),
    )
    async with build_store(cfg) as store:
        service = AppendService.from_settings(store, cfg.append)
        return await service.append(
            cfg.github.file_path,
            record,
            timeout=cfg.append.request_timeout_seconds or None,
        )


def cmd_append(args: argparse.Namespace) -> int:
    """
    Append one record to the ledger without going through the HTTP API.

    Inputs are trimmed exactly as the API trims them.

    Returns:
        0 on success, 1 on invalid input, configuration or append error
    """
    from submission_ledger.ledger import AppendError

    name = (args.name or "").strip()
    phone = (args.phone or "").strip()
    linkedin = (args.linkedin or "").strip()
    if not name or not phone:
        print("Error: name and phone are required.", file=sys.stderr)
        return 1

    cfg = _load_valid_config()
    if cfg is None:
        return 1

    configure_logging(cfg.logging)

    try:
        result = asyncio.run(_append_once(cfg, name, phone, linkedin))
    except AppendError as e:
        print(f"Error: append failed: {e}", file=sys.stderr)
        return 1

    print(
        f"Appended record #{result.position} to {cfg.github.file_path} "
        f"(version {result.version}, {result.attempts} attempt(s))."
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="submission-ledger",
        description="Submission Ledger - append-only sign-in ledger stored in GitHub",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the API server",
        description="Start the HTTP API that accepts sign-in submissions.",
    )
    run_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="API server port (default: 8080, or PORT env var)",
    )
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind to (default: 0.0.0.0, or HOST env var)",
    )
    run_parser.set_defaults(func=cmd_run)

    # show-config command
    show_parser = subparsers.add_parser(
        "show-config",
        help="Print the effective configuration",
        description="Print the merged configuration with the GitHub token masked.",
    )
    show_parser.set_defaults(func=cmd_show_config)

    # append command
    append_parser = subparsers.add_parser(
        "append",
        help="Append one record to the ledger",
        description="Append a single record directly, using the same protocol as the API.",
    )
    append_parser.add_argument("--name", required=True, help="Submitter name")
    append_parser.add_argument("--phone", required=True, help="Submitter phone number")
    append_parser.add_argument("--linkedin", default="", help="Optional profile URL")
    append_parser.set_defaults(func=cmd_append)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
