"""In-memory object store for development and tests."""

from __future__ import annotations

import hashlib
import threading
from typing import Dict, List, Tuple

from chartserver.models.index import join_url

from .base import FetchResult, ObjectStore, PutResult


def content_hash(content: bytes) -> str:
    """ETag-style hash of ``content``."""
    return hashlib.md5(content).hexdigest()


class InMemoryObjectStore(ObjectStore):
    """Dictionary-backed object store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._objects: Dict[Tuple[str, str], Tuple[str, bytes]] = {}

    def put(self, bucket: str, path: str, content: bytes) -> PutResult:
        digest = content_hash(content)
        with self._lock:
            self._objects[(bucket, path)] = (digest, bytes(content))
        return PutResult(hash=digest)

    def get(
        self, bucket: str, path: str, known_hash: str = ""
    ) -> FetchResult:
        with self._lock:
            stored = self._objects.get((bucket, path))
        if stored is None:
            return FetchResult.not_found()
        digest, body = stored
        if known_hash and known_hash == digest:
            return FetchResult.not_modified()
        return FetchResult.fresh(digest, body)

    def get_url(self, bucket: str, directory: str) -> str:
        return join_url(f"memory://{bucket}", directory)

    def read(self, bucket: str, path: str) -> bytes:
        """Return raw object bytes; ``KeyError`` when absent."""
        with self._lock:
            return self._objects[(bucket, path)][1]

    def keys(self) -> List[Tuple[str, str]]:
        with self._lock:
            return sorted(self._objects)
