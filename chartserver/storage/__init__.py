"""Object store abstractions and adapters."""

from __future__ import annotations

import logging

from chartserver.config import Settings
from chartserver.errors import ConfigurationError

from .base import FetchResult, FetchStatus, ObjectStore, PutResult
from .local import LocalObjectStore
from .memory import InMemoryObjectStore, content_hash
from .s3 import S3ObjectStore

_LOGGER = logging.getLogger(__name__)


def build_object_store(settings: Settings) -> ObjectStore:
    """Factory selecting the storage backend named in ``settings``."""

    backend = settings.storage_backend
    _LOGGER.info("Initializing %s object store", backend)
    if backend == "memory":
        return InMemoryObjectStore()
    if backend == "local":
        return LocalObjectStore(settings.storage_dir)
    if backend == "s3":
        return S3ObjectStore(
            region=settings.storage_region,
            endpoint_url=settings.storage_endpoint,
            public_url=settings.storage_public_url,
            timeout=settings.storage_timeout,
        )
    raise ConfigurationError(f"Unknown storage backend '{backend}'")


__all__ = [
    "FetchResult",
    "FetchStatus",
    "InMemoryObjectStore",
    "LocalObjectStore",
    "ObjectStore",
    "PutResult",
    "S3ObjectStore",
    "build_object_store",
    "content_hash",
]
