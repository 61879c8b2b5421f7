from __future__ import annotations

"""Helpers for loading environment configuration."""

import logging
import os
from pathlib import Path
from typing import Optional, Tuple, Union

_ENV_LOADED = False

_LOGGER = logging.getLogger(__name__)


def load_dotenv(dotenv_path: Union[str, Path] = ".env") -> None:
    """Load environment variables from a simple ``.env`` file if present."""
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    path = Path(dotenv_path)
    if path.exists():
        _LOGGER.debug("Loading environment overrides from %s", path)
        for line in path.read_text().splitlines():
            parsed = _parse_line(line)
            if parsed:
                key, value = parsed
                os.environ.setdefault(key, value)

    _ENV_LOADED = True


def _parse_line(line: str) -> Optional[Tuple[str, str]]:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    if "=" not in stripped:
        return None

    key, value = stripped.split("=", 1)
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    return (key.strip(), value)


def truthy(value: Optional[str]) -> bool:
    if value is None:
        return False
    lowered = value.strip().lower()
    return lowered in {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool) -> bool:
    """Return a boolean flag from the environment.

    Unset or blank variables fall back to ``default``; any other value is
    interpreted with :func:`truthy`.
    """

    load_dotenv()
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return truthy(raw)


def env_str(*names: str) -> Optional[str]:
    """Return the first non-blank value among ``names``."""

    load_dotenv()
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None
