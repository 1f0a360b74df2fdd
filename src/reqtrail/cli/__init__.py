"""
reqtrail CLI - Command-line interface.

Commands:
- reqtrail info: Show version and effective configuration
- reqtrail serve: Start the HTTP API server
- reqtrail prune-logs: Delete log files older than the retention window
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence

from reqtrail.config.loader import CONFIG_PATH_ENV, load_settings
from reqtrail.utils.env import get_env_int
from reqtrail.utils.errors import ConfigError


def _get_env_port(default: int = 8000) -> int:
    """Get port from PORT environment variable with safe parsing."""
    port = get_env_int("PORT")
    return default if port is None else port


def cmd_info(args: argparse.Namespace) -> int:
    """Show version and effective configuration."""
    from reqtrail import __version__

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log = settings.logging
    offset = "local" if log.timezone_offset_hours is None else f"UTC{log.timezone_offset_hours:+d}"

    print("=" * 60)
    print(f"reqtrail {__version__}")
    print("=" * 60)
    print(f"Service:        {settings.service_name}")
    print(f"Runtime mode:   {settings.runtime_mode.value}")
    print(f"Log directory:  {log.log_dir}")
    print(f"Max file size:  {log.max_file_size_bytes} bytes")
    print(f"Retention:      {log.retention_days} days")
    print(f"Timestamps:     {offset}")
    print(f"Console mirror: {'on' if settings.console_mirror_enabled() else 'off'}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the HTTP API server.

    The application is built by ``create_app`` inside the server process, so
    settings come from ``--config``/``REQTRAIL_CONFIG`` and the environment.
    """
    import uvicorn

    if args.config:
        os.environ[CONFIG_PATH_ENV] = args.config

    try:
        load_settings()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Starting reqtrail on {args.host}:{args.port}")
    uvicorn.run(
        "reqtrail.api.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        reload=args.reload,
    )
    return 0


def cmd_prune_logs(args: argparse.Namespace) -> int:
    """Run a retention pass over the log directory and list deleted files."""
    from reqtrail.observability.log_sink import LogSink

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log = settings.logging
    retention_days = args.retention_days if args.retention_days is not None else log.retention_days
    sink = LogSink(
        args.log_dir or log.log_dir,
        max_file_size=log.max_file_size_bytes,
        retention_days=retention_days,
        offset_hours=log.timezone_offset_hours,
        prune_on_start=False,
    )
    try:
        deleted = sink.cleanup_expired()
    finally:
        sink.close()

    for name in deleted:
        print(name)
    print(f"Deleted {len(deleted)} file(s) older than {retention_days} days from {sink.log_dir}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    from reqtrail import __version__

    parser = argparse.ArgumentParser(
        prog="reqtrail",
        description="reqtrail - request correlation and access logging",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    info_parser = subparsers.add_parser("info", help="Show version and configuration")
    info_parser.add_argument("--config", type=str, help="Path to configuration file")

    serve_parser = subparsers.add_parser("serve", help="Start HTTP API server")
    serve_parser.add_argument(
        "--host",
        type=str,
        default=os.environ.get("HOST", "127.0.0.1"),
        help="Host to bind to (default: 127.0.0.1, or HOST env var)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=_get_env_port(8000),
        help="Port to bind to (default: 8000, or PORT env var)",
    )
    serve_parser.add_argument("--config", type=str, help="Path to configuration file")
    serve_parser.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Server log level (default: info)",
    )
    serve_parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )

    prune_parser = subparsers.add_parser("prune-logs", help="Delete expired log files")
    prune_parser.add_argument("--config", type=str, help="Path to configuration file")
    prune_parser.add_argument("--log-dir", type=str, help="Override the log directory")
    prune_parser.add_argument(
        "--retention-days",
        type=int,
        help="Override the retention window in days",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "info":
        return cmd_info(args)
    elif args.command == "serve":
        return cmd_serve(args)
    elif args.command == "prune-logs":
        return cmd_prune_logs(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
