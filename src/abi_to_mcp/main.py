"""Uvicorn launcher for the abi-to-mcp HTTP service.

Usage:
  python -m abi_to_mcp.main [--host 0.0.0.0] [--port 8000] [--reload] [--log-level info]

Flags default to the HOST, PORT and LOG_LEVEL settings.
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional

import uvicorn

from .config import get_settings

APP_FACTORY = "abi_to_mcp.app:create_app"


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def serve(*, host: str, port: int, log_level: str, reload: bool = False) -> None:
    """Run the HTTP service until interrupted."""
    configure_logging(log_level)
    logging.getLogger(__name__).info("Starting abi-to-mcp on %s:%d", host, port)
    uvicorn.run(
        APP_FACTORY,
        factory=True,
        host=host,
        port=port,
        log_level=log_level.lower(),
        reload=reload,
    )


def main(argv: Optional[list[str]] = None) -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Run the abi-to-mcp service (uvicorn)")
    parser.add_argument("--host", default=settings.host, help="Bind address (default: %(default)s)")
    parser.add_argument("--port", type=int, default=settings.port, help="Port (default: %(default)s)")
    parser.add_argument("--reload", action="store_true", help="Enable autoreload (dev only)")
    parser.add_argument(
        "--log-level", default=settings.log_level, help="Log level (default: %(default)s)"
    )
    args = parser.parse_args(argv)

    serve(host=args.host, port=args.port, log_level=args.log_level, reload=args.reload)


if __name__ == "__main__":
    main()
