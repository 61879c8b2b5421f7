"""
ChartServer Repository
Introductory remarks: This module is part of the ChartServer codebase.

S3-backed object store with ETag-based conditional reads.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from chartserver.errors import StorageError, StorageUnavailableError
from chartserver.models.index import join_url

from .base import FetchResult, ObjectStore, PutResult

_LOGGER = logging.getLogger(__name__)

_TRANSIENT_CODES = {
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "RequestTimeout",
    "RequestTimeoutException",
    "ServiceUnavailable",
    "InternalError",
    "503",
}
_TRANSIENT_EXCEPTIONS = {
    "EndpointConnectionError",
    "ConnectTimeoutError",
    "ReadTimeoutError",
    "ConnectionClosedError",
}
_TRANSIENT_MESSAGES = (
    "timed out",
    "timeout",
    "temporarily unavailable",
    "service unavailable",
    "connection reset",
    "connection aborted",
    "connection refused",
    "endpoint connection error",
)
_NOT_MODIFIED_CODES = {"304", "NotModified"}
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(exc: Exception) -> Optional[str]:
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        error = response.get("Error")
        if isinstance(error, dict):
            code = error.get("Code")
            if code is not None:
                return str(code)
    return None


def _http_status(exc: Exception) -> Optional[int]:
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        metadata = response.get("ResponseMetadata")
        if isinstance(metadata, dict):
            status = metadata.get("HTTPStatusCode")
            if isinstance(status, int):
                return status
    return None


def looks_like_transient_cloud_failure(exc: Exception) -> bool:
    """
    looks_like_transient_cloud_failure: Classify throttling/network errors.
    :param exc:
    :returns:
    """

    code = _error_code(exc)
    if code and code in _TRANSIENT_CODES:
        return True
    if exc.__class__.__name__ in _TRANSIENT_EXCEPTIONS:
        return True
    message = str(exc).lower()
    return any(token in message for token in _TRANSIENT_MESSAGES)


def _storage_error(action: str, exc: Exception) -> StorageError:
    if looks_like_transient_cloud_failure(exc):
        return StorageUnavailableError(
            f"S3 temporarily unavailable during {action}: {exc}"
        )
    return StorageError(f"S3 {action} failed: {exc}")


def build_s3_client(
    *,
    region: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    timeout: float = 10.0,
) -> Any:
    """Create a boto3 S3 client with bounded timeouts and standard retries."""

    client_kwargs: Dict[str, Any] = {
        "config": Config(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": 5, "mode": "standard"},
        ),
    }
    if region:
        client_kwargs["region_name"] = region
    if endpoint_url:
        client_kwargs["endpoint_url"] = endpoint_url
    return boto3.client("s3", **client_kwargs)


class S3ObjectStore(ObjectStore):
    """Store chart blobs and index documents in S3 buckets."""

    def __init__(
        self,
        *,
        client: Any | None = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        public_url: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        if client is None:
            client = build_s3_client(
                region=region, endpoint_url=endpoint_url, timeout=timeout
            )
        self._s3 = client
        self._region = region
        self._endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None
        self._public_url = public_url.rstrip("/") if public_url else None

    def put(self, bucket: str, path: str, content: bytes) -> PutResult:
        key = path.lstrip("/")
        try:
            response = self._s3.put_object(
                Bucket=bucket,
                Key=key,
                Body=content,
                ContentType=_content_type(key),
            )
        except (ClientError, BotoCoreError) as exc:
            _LOGGER.error("S3 put failed for s3://%s/%s: %s", bucket, key, exc)
            raise _storage_error("upload", exc) from exc
        etag = response.get("ETag") if isinstance(response, dict) else None
        if not etag:
            raise StorageError(
                f"S3 upload of s3://{bucket}/{key} returned no ETag"
            )
        return PutResult(hash=str(etag))

    def get(
        self, bucket: str, path: str, known_hash: str = ""
    ) -> FetchResult:
        key = path.lstrip("/")
        params: Dict[str, Any] = {"Bucket": bucket, "Key": key}
        if known_hash:
            params["IfNoneMatch"] = known_hash
        try:
            response = self._s3.get_object(**params)
            body = response["Body"].read()
        except ClientError as exc:
            code = _error_code(exc)
            status = _http_status(exc)
            if code in _NOT_MODIFIED_CODES or status == 304:
                return FetchResult.not_modified()
            if code in _NOT_FOUND_CODES or status == 404:
                return FetchResult.not_found()
            _LOGGER.error(
                "ClientError fetching s3://%s/%s: %s", bucket, key, exc
            )
            raise _storage_error("download", exc) from exc
        except BotoCoreError as exc:
            _LOGGER.error(
                "BotoCoreError fetching s3://%s/%s: %s", bucket, key, exc
            )
            raise _storage_error("download", exc) from exc
        etag = response.get("ETag")
        if not etag:
            raise StorageError(
                f"S3 download of s3://{bucket}/{key} returned no ETag"
            )
        return FetchResult.fresh(str(etag), body)

    def get_url(self, bucket: str, directory: str) -> str:
        if self._public_url:
            return join_url(self._public_url, directory)
        if self._endpoint_url:
            return join_url(self._endpoint_url, bucket, directory)
        if self._region and self._region != "us-east-1":
            return join_url(
                f"https://{bucket}.s3.{self._region}.amazonaws.com", directory
            )
        return join_url(f"https://{bucket}.s3.amazonaws.com", directory)


def _content_type(key: str) -> str:
    if key.endswith((".yaml", ".yml")):
        return "application/x-yaml"
    if key.endswith((".tgz", ".tar.gz")):
        return "application/gzip"
    return "application/octet-stream"
