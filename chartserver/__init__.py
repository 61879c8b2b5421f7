"""Chart repository index publishing with a coherent in-memory cache."""

from .errors import (ArchiveParseError, ChartServerError, ConfigurationError,
                     DigestError, IndexDecodeError, InvalidFilenameError,
                     ReadError, RepositoryNotFoundError,
                     SerializationError, StorageError,
                     StorageUnavailableError)
from .publisher import Publisher, build_publisher_from_env

__all__ = [
    "ArchiveParseError",
    "ChartServerError",
    "ConfigurationError",
    "DigestError",
    "IndexDecodeError",
    "InvalidFilenameError",
    "Publisher",
    "ReadError",
    "RepositoryNotFoundError",
    "SerializationError",
    "StorageError",
    "StorageUnavailableError",
    "build_publisher_from_env",
]
