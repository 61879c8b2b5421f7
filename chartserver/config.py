"""
ChartServer Repository
Introductory remarks: This module is part of the ChartServer codebase.

Central configuration for the chart server.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError
from .utils.env import env_flag, env_str

INDEX_FILENAME = "index.yaml"
"""Well-known name of the index document inside every repository."""

INDEX_API_VERSION = "v1"
"""apiVersion written into generated index documents."""

STORAGE_BACKENDS = ("memory", "local", "s3")

DEFAULT_STORAGE_BACKEND = "local"
DEFAULT_STORAGE_DIR = "/tmp/chartserver-storage"
DEFAULT_STORAGE_TIMEOUT = 10.0


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the environment."""

    storage_backend: str = DEFAULT_STORAGE_BACKEND
    storage_dir: Path = Path(DEFAULT_STORAGE_DIR)
    storage_endpoint: Optional[str] = None
    storage_region: Optional[str] = None
    storage_public_url: Optional[str] = None
    storage_timeout: float = DEFAULT_STORAGE_TIMEOUT
    repositories_file: Optional[Path] = None
    repositories_inline: Optional[str] = None
    serialize_publishes: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        backend = (
            env_str("CHART_STORAGE_BACKEND") or DEFAULT_STORAGE_BACKEND
        ).lower()
        if backend not in STORAGE_BACKENDS:
            raise ConfigurationError(
                f"CHART_STORAGE_BACKEND '{backend}' is not one of "
                f"{', '.join(STORAGE_BACKENDS)}"
            )

        timeout_raw = env_str("CHART_STORAGE_TIMEOUT")
        timeout = DEFAULT_STORAGE_TIMEOUT
        if timeout_raw is not None:
            try:
                timeout = float(timeout_raw)
            except ValueError as exc:
                raise ConfigurationError(
                    f"CHART_STORAGE_TIMEOUT '{timeout_raw}' is not a number"
                ) from exc
            if timeout <= 0:
                raise ConfigurationError(
                    "CHART_STORAGE_TIMEOUT must be positive"
                )

        repositories_file = env_str("CHART_REPOSITORIES_FILE")
        return cls(
            storage_backend=backend,
            storage_dir=Path(
                env_str("CHART_STORAGE_DIR") or DEFAULT_STORAGE_DIR
            ),
            storage_endpoint=env_str("CHART_STORAGE_ENDPOINT"),
            storage_region=env_str(
                "CHART_STORAGE_REGION", "AWS_REGION", "AWS_DEFAULT_REGION"
            ),
            storage_public_url=env_str("CHART_STORAGE_PUBLIC_URL"),
            storage_timeout=timeout,
            repositories_file=(
                Path(repositories_file) if repositories_file else None
            ),
            repositories_inline=env_str("CHART_REPOSITORIES"),
            serialize_publishes=env_flag("CHART_SERIALIZE_PUBLISHES", True),
        )
