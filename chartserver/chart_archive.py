"""
ChartServer Repository
Introductory remarks: This module is part of the ChartServer codebase.

Helpers for reading packaged charts (gzip-compressed tarballs).
"""

from __future__ import annotations

import hashlib
import io
import logging
import tarfile
import zlib
from pathlib import PurePosixPath
from typing import IO, Dict, Optional

import yaml

from .errors import ArchiveParseError, DigestError
from .models.charts import ChartMetadata

CHART_FILE = "Chart.yaml"
_PAX_HEADER = "pax_global_header"
_MAX_CHART_FILE_BYTES = 1024 * 1024
_DIGEST_CHUNK = 64 * 1024

_LOGGER = logging.getLogger(__name__)


def load_archive(content: bytes) -> ChartMetadata:
    """Extract chart metadata from packaged chart bytes."""

    files = _read_chart_files(content)
    raw = files.get(CHART_FILE)
    if raw is None:
        raise ArchiveParseError("chart metadata (Chart.yaml) missing")
    try:
        payload = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ArchiveParseError(f"invalid Chart.yaml: {exc}") from exc
    if not isinstance(payload, dict):
        raise ArchiveParseError("invalid Chart.yaml: expected a mapping")
    try:
        metadata = ChartMetadata.from_dict(payload)
    except ValueError as exc:
        raise ArchiveParseError(f"invalid chart (Chart.yaml): {exc}") from exc
    _LOGGER.debug(
        "Loaded chart name=%s version=%s", metadata.name, metadata.version
    )
    return metadata


def _read_chart_files(content: bytes) -> Dict[str, bytes]:
    """Return the chart-root-relative files we care about."""

    wanted: Dict[str, bytes] = {}
    try:
        with tarfile.open(fileobj=io.BytesIO(content), mode="r:gz") as tar:
            for member in tar:
                relative = _chart_relative_path(member.name)
                if relative is None or not member.isfile():
                    continue
                if relative != CHART_FILE:
                    continue
                if member.size > _MAX_CHART_FILE_BYTES:
                    raise ArchiveParseError(
                        f"{CHART_FILE} exceeds {_MAX_CHART_FILE_BYTES} bytes"
                    )
                handle = tar.extractfile(member)
                if handle is None:
                    continue
                with handle:
                    wanted[relative] = handle.read()
    except (tarfile.TarError, EOFError, OSError, zlib.error) as exc:
        raise ArchiveParseError(f"failed to read chart archive: {exc}") from exc
    return wanted


def _chart_relative_path(name: str) -> Optional[str]:
    """Drop the chart's top-level directory from a member name.

    Returns ``None`` for entries that are not inside a chart directory.
    """

    if PurePosixPath(name).name == _PAX_HEADER:
        return None
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts:
        raise ArchiveParseError(
            f"chart illegally contains content outside the base directory: "
            f"'{name}'"
        )
    parts = [part for part in path.parts if part not in ("", ".")]
    if len(parts) < 2:
        return None
    return "/".join(parts[1:])


def digest(content: bytes | IO[bytes]) -> str:
    """Return the SHA-256 hex digest of ``content``."""

    stream: IO[bytes]
    if isinstance(content, (bytes, bytearray, memoryview)):
        stream = io.BytesIO(bytes(content))
    else:
        stream = content
    hasher = hashlib.sha256()
    try:
        while True:
            chunk = stream.read(_DIGEST_CHUNK)
            if not chunk:
                break
            hasher.update(chunk)
    except (OSError, ValueError) as exc:
        raise DigestError(f"failed to digest chart: {exc}") from exc
    return hasher.hexdigest()
