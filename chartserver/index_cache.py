"""
ChartServer Repository
Introductory remarks: This module is part of the ChartServer codebase.

In-memory cache of repository indexes kept coherent with the object store.

Each repository owns one ``CachedIndex`` snapshot. A snapshot is either the
empty index with an empty hash (never synced), the document last fetched
under ``hash``, or the document this process last wrote with the hash the
store returned for that write. Snapshots are immutable and replaced
wholesale; every read and replacement happens under a single lock so the
hash and the document are always observed together.

Store I/O never happens while the lock is held.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable

from .errors import RepositoryNotFoundError
from .models.index import IndexFile
from .repositories import Repository
from .storage.base import FetchStatus, ObjectStore

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedIndex:
    """Last-known index for one repository and the hash it was synced at."""

    hash: str = ""
    document: IndexFile = field(default_factory=IndexFile.empty)

    @property
    def synced(self) -> bool:
        return bool(self.hash)


class IndexCache:
    """Serve repository indexes from memory unless the store has changed."""

    def __init__(
        self, store: ObjectStore, repositories: Iterable[Repository]
    ) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._entries: Dict[str, CachedIndex] = {
            repository.name: CachedIndex() for repository in repositories
        }

    def _entry(self, repository: Repository) -> CachedIndex:
        # Caller holds self._lock.
        try:
            return self._entries[repository.name]
        except KeyError as exc:
            raise RepositoryNotFoundError(
                f"Repository '{repository.name}' has no cached index"
            ) from exc

    def snapshot(self, repository: Repository) -> CachedIndex:
        """Return the current hash/document pair for ``repository``."""
        with self._lock:
            return self._entry(repository)

    def get_index(self, repository: Repository) -> IndexFile:
        """Return the current index, fetching only when the store changed.

        Not-modified and not-found answers return the cached document
        untouched. A fresh body replaces the cache entry, unless another
        thread advanced the entry while the fetch was in flight, in which
        case the newer cache state is kept and the fetched document is
        returned as-is. Store and decode errors propagate and leave the
        cache untouched.
        """
        with self._lock:
            current = self._entry(repository)

        result = self._store.get(
            repository.bucket, repository.index_path, current.hash
        )
        if result.status is not FetchStatus.FRESH:
            _LOGGER.debug(
                "Index for repository=%s served from cache (%s)",
                repository.name,
                result.status.value,
            )
            return current.document

        document = IndexFile.from_yaml(result.body or b"")
        fetched = CachedIndex(hash=result.hash, document=document)
        with self._lock:
            if self._entry(repository) is current:
                self._entries[repository.name] = fetched
                installed = True
            else:
                installed = False
        if installed:
            _LOGGER.info(
                "Refreshed index for repository=%s hash=%s entries=%d",
                repository.name,
                result.hash,
                len(document),
            )
        else:
            _LOGGER.debug(
                "Cache for repository=%s advanced during fetch; "
                "keeping newer entry",
                repository.name,
            )
        return document

    def swap_document(
        self, repository: Repository, document: IndexFile
    ) -> CachedIndex:
        """Make ``document`` visible to readers ahead of its store write.

        The previous hash is kept; it no longer describes the document until
        :meth:`confirm_hash` records the hash of the write.
        """
        with self._lock:
            previous = self._entry(repository)
            pending = CachedIndex(hash=previous.hash, document=document)
            self._entries[repository.name] = pending
            return pending

    def confirm_hash(
        self, repository: Repository, document: IndexFile, hash: str
    ) -> bool:
        """Record the stored hash of ``document`` if it is still cached.

        Returns ``False`` when a concurrent fetch replaced the document, in
        which case the hash is not attached to a document it does not
        describe.
        """
        with self._lock:
            current = self._entry(repository)
            if current.document is not document:
                return False
            self._entries[repository.name] = CachedIndex(
                hash=hash, document=document
            )
            return True
