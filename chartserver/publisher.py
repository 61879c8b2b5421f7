"""
ChartServer Repository
Introductory remarks: This module is part of the ChartServer codebase.

Publish charts into repositories and keep their index documents current.

A publish runs these steps:
  (1) resolve the repository by name
  (2) read the chart stream into memory
  (3) store the raw chart blob
  (4) build a single-entry index for the chart
  (5) fetch (or reuse) the current index
  (6) merge and sort
  (7) swap the cached document so readers see the merged view
  (8) store the serialized index
  (9) record the hash returned by that write

Steps (5) to (9) run under a per-repository lock when publish
serialization is enabled, so two publishes to the same repository in this
process cannot read the same index and overwrite each other's entry.
Failures after step (3) leave the stored chart blob in place; a failure at
step (8) leaves the merged document cached with the previous hash until
the next successful publish or fetch.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import IO, Dict, Iterator, Optional, Union

from .chart_archive import digest, load_archive
from .config import INDEX_FILENAME, Settings
from .errors import ReadError, StorageError
from .index_cache import IndexCache
from .logging_config import configure_logging
from .models.index import IndexFile
from .repositories import Repository, RepositoryRegistry, load_repositories
from .storage import ObjectStore, PutResult, build_object_store

_LOGGER = logging.getLogger(__name__)

ChartSource = Union[bytes, bytearray, memoryview, IO[bytes]]


class _LockRegistry:
    """Lazily created lock per repository name."""

    def __init__(self) -> None:
        self._gate = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    @contextlib.contextmanager
    def acquire(self, key: str) -> Iterator[None]:
        with self._gate:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
        with lock:
            yield


class Publisher:
    """Entry point for publishing charts and reading repository indexes."""

    def __init__(
        self,
        registry: RepositoryRegistry,
        store: ObjectStore,
        *,
        cache: Optional[IndexCache] = None,
        serialize_publishes: bool = True,
    ) -> None:
        self._registry = registry
        self._store = store
        self._cache = cache if cache is not None else IndexCache(store, registry)
        self._serialize_publishes = serialize_publishes
        self._publish_locks = _LockRegistry()

    @property
    def registry(self) -> RepositoryRegistry:
        return self._registry

    @property
    def cache(self) -> IndexCache:
        return self._cache

    def get_index(self, repository_name: str) -> IndexFile:
        """Return the current index document of ``repository_name``."""
        repository = self._registry.get(repository_name)
        try:
            return self._cache.get_index(repository)
        except StorageError as exc:
            raise _stage_error("get index", repository, exc) from exc

    def publish(
        self, repository_name: str, filename: str, chart: ChartSource
    ) -> None:
        """Store ``chart`` in the repository and merge it into its index."""
        repository = self._registry.get(repository_name)
        chart_key = repository.chart_path(filename)
        content = _read_chart(chart)
        _LOGGER.info(
            "Publishing repository=%s filename=%s bytes=%d",
            repository.name,
            filename,
            len(content),
        )

        self._store_file(repository, chart_key, content, stage="store chart")

        single = self.build_single_entry_index(repository, filename, content)
        with self._publish_guard(repository):
            self._update_index(repository, single)

    def build_single_entry_index(
        self, repository: Repository, filename: str, content: bytes
    ) -> IndexFile:
        """Create a temporary index holding only the published chart."""
        metadata = load_archive(content)
        chart_digest = digest(content)
        index = IndexFile.empty()
        index.add(
            metadata,
            filename,
            self._store.get_url(repository.bucket, repository.prefix),
            chart_digest,
        )
        return index

    def _update_index(self, repository: Repository, single: IndexFile) -> None:
        try:
            current = self._cache.get_index(repository)
        except StorageError as exc:
            raise _stage_error("get index", repository, exc) from exc

        merged = current.merge(single).sort_entries()
        self._cache.swap_document(repository, merged)

        payload = merged.to_yaml()
        result = self._store_file(
            repository,
            repository.index_path,
            payload,
            stage=f"store {INDEX_FILENAME}",
        )
        if not self._cache.confirm_hash(repository, merged, result.hash):
            _LOGGER.warning(
                "Index for repository=%s was replaced during publish; "
                "hash %s not recorded",
                repository.name,
                result.hash,
            )
        _LOGGER.info(
            "Published index for repository=%s hash=%s entries=%d",
            repository.name,
            result.hash,
            len(merged),
        )

    def _store_file(
        self,
        repository: Repository,
        key: str,
        content: bytes,
        *,
        stage: str,
    ) -> PutResult:
        try:
            return self._store.put(repository.bucket, key, content)
        except StorageError as exc:
            _LOGGER.error(
                "%s failed for repository=%s: %s", stage, repository.name, exc
            )
            raise _stage_error(stage, repository, exc) from exc

    @contextlib.contextmanager
    def _publish_guard(self, repository: Repository) -> Iterator[None]:
        if not self._serialize_publishes:
            yield
            return
        with self._publish_locks.acquire(repository.name):
            yield


def _read_chart(chart: ChartSource) -> bytes:
    if isinstance(chart, (bytes, bytearray, memoryview)):
        return bytes(chart)
    try:
        content = chart.read()
    except (OSError, ValueError) as exc:
        raise ReadError(f"failed to read chart stream: {exc}") from exc
    if not isinstance(content, (bytes, bytearray)):
        raise ReadError("chart stream must yield bytes")
    return bytes(content)


def build_publisher_from_env() -> Publisher:
    """Factory wiring settings, storage and repositories from the environment."""

    configure_logging()
    settings = Settings.from_env()
    registry = load_repositories(settings)
    store = build_object_store(settings)
    return Publisher(
        registry,
        store,
        serialize_publishes=settings.serialize_publishes,
    )


def _stage_error(
    stage: str, repository: Repository, exc: StorageError
) -> StorageError:
    # Keep the error kind (e.g. StorageUnavailableError) so callers can retry.
    return type(exc)(f"{stage} failed for repository '{repository.name}': {exc}")
