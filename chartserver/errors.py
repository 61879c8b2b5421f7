"""Error kinds raised by the chart publishing core."""

from __future__ import annotations


class ChartServerError(RuntimeError):
    """Base class for chart server failures."""


class ConfigurationError(ChartServerError):
    """Raised when settings or the repository list cannot be decoded."""


class RepositoryNotFoundError(ChartServerError):
    """Raised when a repository name is not configured."""


class ReadError(ChartServerError):
    """Raised when the uploaded chart stream cannot be consumed."""


class InvalidFilenameError(ChartServerError):
    """Raised when a chart filename would leave its repository directory."""


class ArchiveParseError(ChartServerError):
    """Raised when uploaded bytes are not a valid packaged chart."""


class DigestError(ChartServerError):
    """Raised when the chart digest cannot be computed."""


class StorageError(ChartServerError):
    """Raised when the object store rejects or fails an operation."""


class StorageUnavailableError(StorageError):
    """Raised when the object store is temporarily unavailable (e.g. S3 outage)."""


class SerializationError(ChartServerError):
    """Raised when an index document cannot be encoded."""


class IndexDecodeError(SerializationError):
    """Raised when a stored index document cannot be decoded."""
