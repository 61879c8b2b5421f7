"""
ChartServer Repository
Introductory remarks: This module is part of the ChartServer codebase.

Filesystem-backed object store (useful for dev/tests).
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path, PurePosixPath

from chartserver.errors import StorageError

from .base import FetchResult, ObjectStore, PutResult
from .memory import content_hash

_LOGGER = logging.getLogger(__name__)


class LocalObjectStore(ObjectStore):
    """Persist objects under ``base_dir/<bucket>/<path>``."""

    def __init__(self, base_dir: Path) -> None:
        """
        __init__: Create the base directory when missing.
        :param base_dir:
        :returns:
        """

        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)

    def _object_path(self, bucket: str, path: str) -> Path:
        """
        _object_path: Resolve an object key to a file below the bucket.
        :param bucket:
        :param path:
        :returns:
        """

        relative = PurePosixPath(path.lstrip("/"))
        if not bucket or "/" in bucket or bucket in {".", ".."}:
            raise StorageError(f"Invalid bucket name '{bucket}'")
        if not relative.parts or ".." in relative.parts:
            raise StorageError(f"Invalid object path '{path}'")
        return self._base_dir.joinpath(bucket, *relative.parts)

    def put(self, bucket: str, path: str, content: bytes) -> PutResult:
        """
        put: Write atomically through a temporary file in the same directory.
        :param bucket:
        :param path:
        :param content:
        :returns:
        """

        destination = self._object_path(bucket, path)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                dir=destination.parent, prefix=".upload-"
            )
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(content)
                os.replace(temp_name, destination)
            except Exception:
                Path(temp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(
                f"Failed to write '{bucket}/{path}': {exc}"
            ) from exc
        _LOGGER.debug("Stored %s bytes at %s", len(content), destination)
        return PutResult(hash=content_hash(content))

    def get(
        self, bucket: str, path: str, known_hash: str = ""
    ) -> FetchResult:
        """
        get: Conditional read keyed on the MD5 of the stored bytes.
        :param bucket:
        :param path:
        :param known_hash:
        :returns:
        """

        source = self._object_path(bucket, path)
        try:
            body = source.read_bytes()
        except FileNotFoundError:
            return FetchResult.not_found()
        except OSError as exc:
            raise StorageError(
                f"Failed to read '{bucket}/{path}': {exc}"
            ) from exc
        digest = content_hash(body)
        if known_hash and known_hash == digest:
            return FetchResult.not_modified()
        return FetchResult.fresh(digest, body)

    def get_url(self, bucket: str, directory: str) -> str:
        """
        get_url: ``file://`` URI of the directory.
        :param bucket:
        :param directory:
        :returns:
        """

        target = self._base_dir / bucket
        parts = PurePosixPath(directory.strip("/")).parts
        if parts:
            target = target.joinpath(*parts)
        return target.resolve().as_uri()
