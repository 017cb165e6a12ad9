"""Run the marksync HTTP server.

Usage:
    marksync-serve [--host HOST] [--port PORT] [--db-path PATH]
"""

from __future__ import annotations

import argparse
import sys
from typing import Any

import uvicorn

from marksync.api.main import create_app
from marksync.config import load_config
from marksync.core.logging_utils import get_logger, setup_json_logging
from marksync.db.session import DatabaseSessionManager
from marksync.domain.exceptions import StorageError

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="marksync-serve",
        description="Serve the xBrowserSync-compatible sync API.",
    )
    parser.add_argument("--host", help="Bind address (overrides SERVER_HOST)")
    parser.add_argument("--port", type=int, help="Bind port (overrides SERVER_PORT)")
    parser.add_argument("--db-path", help="Store file (overrides DB_PATH)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides LOG_LEVEL)",
    )
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, dict[str, Any]]:
    overrides: dict[str, dict[str, Any]] = {}
    if args.host:
        overrides.setdefault("server", {})["host"] = args.host
    if args.port:
        overrides.setdefault("server", {})["port"] = args.port
    if args.db_path:
        overrides.setdefault("database", {})["path"] = args.db_path
    if args.log_level:
        overrides.setdefault("runtime", {})["log_level"] = args.log_level
    return overrides


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        cfg = load_config(**_overrides(args))
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    setup_json_logging(cfg.runtime.log_level, log_file=cfg.runtime.log_file)

    session = DatabaseSessionManager.from_config(cfg.database)
    try:
        session.open()
    except StorageError:
        logger.critical("server_start_aborted", extra={"reason": "store_unavailable"})
        return 1

    logger.info(
        "server_starting",
        extra={
            "host": cfg.server.host,
            "port": cfg.server.port,
            "build_stamp": cfg.runtime.build_stamp,
        },
    )
    uvicorn.run(
        create_app(cfg, session),
        host=cfg.server.host,
        port=cfg.server.port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
