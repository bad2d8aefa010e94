"""Logging configuration for the server process."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging(level: str = "info", log_file: str | None = None) -> None:
    """Configure the root logger once per process.

    Args:
        level: Level name (case-insensitive), e.g. "info" or "debug"
        log_file: Optional file receiving the same records as stdout
    """
    global _configured
    if _configured:
        return

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )

    # Set specific loggers to appropriate levels
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("filelock").setLevel(logging.WARNING)

    _configured = True
    logging.getLogger(__name__).debug("Logging configured (level=%s, file=%s)", level, log_file)
