"""Command-line entry point for workspace metadata sync."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, List, Optional

import structlog

from . import commands
from .config import RuntimeConfig, bootstrap, build_runtime_config

CommandHandler = Callable[[argparse.Namespace, RuntimeConfig], None]

LOG_FORMATS = ("kv", "json")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workspace-sync",
        description="Synchronize standard metadata into workspaces.",
    )
    parser.add_argument(
        "--env-file",
        dest="env_files",
        action="append",
        default=[],
        metavar="PATH",
        help="Extra .env file loaded before the default search (repeatable)",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (CRITICAL, ERROR, WARNING, INFO, DEBUG). "
        "Default: WORKSPACE_SYNC_LOG_LEVEL or INFO",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default="kv",
        help="Render log lines as key=value pairs or JSON objects",
    )
    parser.add_argument(
        "--database-url",
        dest="database_url",
        help="Metadata store URL (env: WORKSPACE_SYNC_DATABASE_URL or DATABASE_URL)",
    )
    parser.add_argument(
        "--log-dir",
        dest="log_dir",
        help="Directory for dry-run diff logs (env: WORKSPACE_SYNC_LOG_DIR)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    commands.register(subparsers)
    return parser


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.processors.KeyValueRenderer(
        key_order=["timestamp", "level", "logger", "event"],
        sort_keys=True,
    )


def configure_logging(level_name: str, log_format: str = "kv") -> None:
    """Route structlog and stdlib records through one stderr handler."""

    level_value = getattr(logging, level_name.upper(), logging.INFO)
    timestamper = structlog.processors.TimeStamper(fmt="iso", key="timestamp")
    shared = [structlog.stdlib.add_log_level, structlog.stdlib.add_logger_name, timestamper]

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format),
            foreign_pre_chain=shared,
        )
    )
    handler.setLevel(level_value)

    logging.basicConfig(level=level_value, handlers=[handler], force=True)


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    bootstrap(args.env_files)

    handler: CommandHandler = getattr(args, "handler", None)
    if not callable(handler):
        parser.error("Command handler missing")

    runtime = build_runtime_config(
        log_level=args.log_level,
        database_url=getattr(args, "database_url", None),
        log_dir=getattr(args, "log_dir", None),
    )
    configure_logging(runtime.log_level, args.log_format)

    handler(args, runtime)


if __name__ == "__main__":  # pragma: no cover
    main()
