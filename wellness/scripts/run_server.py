"""Serve the wellness tips API with uvicorn."""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

import uvicorn

from wellness.config import Settings

LOGGER = logging.getLogger("wellness.server")


def _configure_logging(level_name: str) -> None:
    """Configure root logging at ``level_name``."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def parse_args(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> argparse.Namespace:
    settings = settings or Settings.from_env()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--host", default=settings.host, help="Interface to bind (WELLNESS_HOST)")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on (PORT)")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level for the application loggers (WELLNESS_LOG_LEVEL)",
    )
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.log_level)
    LOGGER.info("Server listening on port %s", args.port, extra={"event": "server.start"})
    uvicorn.run(
        "wellness.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
