"""Shared logger initialization for textcal.

Usage:
    from utils.logger import get_logger
    log = get_logger(__name__)
    log.info("message")
"""
from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import get_config

_FORMAT = "%(message)s"  # rich handler already adds time & level


def _level_from_env() -> int:
    level = logging.getLevelName((get_config("TEXTCAL_LOG_LEVEL") or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[int] = None) -> None:
    """Idempotently attach a RichHandler to the ``textcal`` logger tree."""
    root = logging.getLogger("textcal")
    if any(isinstance(h, RichHandler) for h in root.handlers):
        return
    level = level if level is not None else _level_from_env()
    handler = RichHandler(console=Console(stderr=True), rich_tracebacks=True, markup=False, show_path=False)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.setLevel(level)
    root.addHandler(handler)


def get_logger(name: str = __name__, level: Optional[int] = None) -> logging.Logger:
    """Return a logger under the ``textcal`` namespace (configuring it on first call)."""
    configure_logging()
    if not name.startswith("textcal"):
        name = f"textcal.{name}"
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger
