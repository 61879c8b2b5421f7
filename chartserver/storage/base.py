"""Object store contract consumed by the publishing core."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Protocol


class FetchStatus(str, enum.Enum):
    """Outcome of a conditional read."""

    FRESH = "fresh"
    NOT_MODIFIED = "not_modified"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class PutResult:
    """Content hash the store assigned to a written object."""

    hash: str


@dataclass(frozen=True)
class FetchResult:
    """Tagged result of :meth:`ObjectStore.get`.

    ``hash`` and ``body`` are only populated for ``FetchStatus.FRESH``.
    """

    status: FetchStatus
    hash: str = ""
    body: Optional[bytes] = None

    @classmethod
    def fresh(cls, hash: str, body: bytes) -> "FetchResult":
        return cls(status=FetchStatus.FRESH, hash=hash, body=body)

    @classmethod
    def not_modified(cls) -> "FetchResult":
        return cls(status=FetchStatus.NOT_MODIFIED)

    @classmethod
    def not_found(cls) -> "FetchResult":
        return cls(status=FetchStatus.NOT_FOUND)

    @property
    def is_fresh(self) -> bool:
        return self.status is FetchStatus.FRESH


class ObjectStore(Protocol):
    """Key/value blob store with conditional-get semantics."""

    def put(self, bucket: str, path: str, content: bytes) -> PutResult:
        """Write ``content`` and return its content-derived hash."""

    def get(
        self, bucket: str, path: str, known_hash: str = ""
    ) -> FetchResult:
        """Return the object unless ``known_hash`` still matches it.

        Missing objects yield ``NOT_FOUND``; any other failure raises
        ``StorageError``.
        """

    def get_url(self, bucket: str, directory: str) -> str:
        """Return the base download URL for objects under ``directory``."""
