"""Central logging configuration for the chart server."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

_CONFIGURED = False
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_NAMED_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def configure_logging() -> None:
    """Configure global logging based on LOG_LEVEL and LOG_FILE."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    level = _read_level(os.getenv("LOG_LEVEL", "0"))
    log_path = os.getenv("LOG_FILE")

    if level is None:
        # Silent mode; keep logging disabled.
        _CONFIGURED = True
        return

    if not log_path:
        logging.basicConfig(
            level=level,
            format=_FORMAT,
            force=True,
        )
        _CONFIGURED = True
        return

    log_file = Path(log_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        filename=log_file,
        filemode="a",
        format=_FORMAT,
        force=True,
    )
    _CONFIGURED = True


def _read_level(raw: str) -> Optional[int]:
    """Resolve LOG_LEVEL to a logging level; ``None`` means silent."""
    raw = raw.strip()
    try:
        verbosity = int(raw)
    except ValueError:
        return _NAMED_LEVELS.get(raw.lower())
    if verbosity <= 0:
        return None
    return _map_level(verbosity)


def _map_level(level: int) -> int:
    if level >= 2:
        return logging.DEBUG
    return logging.INFO
