"""
ChartServer Repository
Introductory remarks: This module is part of the ChartServer codebase.

Tests for the S3 object store adapter.
"""

from __future__ import annotations

import io
from typing import Any, Dict, List, Optional

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from chartserver.errors import StorageError, StorageUnavailableError
from chartserver.storage import FetchStatus
from chartserver.storage import s3 as s3_module
from chartserver.storage.s3 import (S3ObjectStore,
                                    looks_like_transient_cloud_failure)


def _client_error(code: str, status: int, operation: str = "GetObject") -> ClientError:
    """
    _client_error: Build a botocore ClientError the way S3 reports it.
    :param code:
    :param status:
    :param operation:
    :returns:
    """

    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class _FakeS3Client:
    """
    _FakeS3Client: Minimal S3 client honouring IfNoneMatch.
    """

    def __init__(self) -> None:
        self.objects: Dict[tuple[str, str], tuple[str, bytes]] = {}
        self.put_calls: List[Dict[str, Any]] = []
        self.get_calls: List[Dict[str, Any]] = []
        self.raise_on_get: Optional[Exception] = None
        self.raise_on_put: Optional[Exception] = None
        self._counter = 0

    def put_object(self, **kwargs: Any) -> Dict[str, Any]:
        self.put_calls.append(kwargs)
        if self.raise_on_put is not None:
            raise self.raise_on_put
        self._counter += 1
        etag = f'"etag-{self._counter}"'
        self.objects[(kwargs["Bucket"], kwargs["Key"])] = (etag, kwargs["Body"])
        return {"ETag": etag}

    def get_object(self, **kwargs: Any) -> Dict[str, Any]:
        self.get_calls.append(kwargs)
        if self.raise_on_get is not None:
            raise self.raise_on_get
        stored = self.objects.get((kwargs["Bucket"], kwargs["Key"]))
        if stored is None:
            raise _client_error("NoSuchKey", 404)
        etag, body = stored
        if kwargs.get("IfNoneMatch") == etag:
            raise _client_error("304", 304)
        return {"ETag": etag, "Body": io.BytesIO(body)}


def test_put_then_get_round_trip() -> None:
    client = _FakeS3Client()
    store = S3ObjectStore(client=client)

    written = store.put("bucket", "/stable/index.yaml", b"entries: {}\n")
    result = store.get("bucket", "stable/index.yaml")

    assert written.hash == '"etag-1"'
    assert result.is_fresh
    assert result.hash == written.hash
    assert result.body == b"entries: {}\n"
    assert client.put_calls[0]["Key"] == "stable/index.yaml"
    assert client.put_calls[0]["ContentType"] == "application/x-yaml"
    assert "IfNoneMatch" not in client.get_calls[0]


def test_get_passes_known_hash_and_maps_304() -> None:
    client = _FakeS3Client()
    store = S3ObjectStore(client=client)
    written = store.put("bucket", "stable/index.yaml", b"x")

    result = store.get("bucket", "stable/index.yaml", written.hash)

    assert result.status is FetchStatus.NOT_MODIFIED
    assert client.get_calls[-1]["IfNoneMatch"] == written.hash


def test_get_missing_key_is_not_found() -> None:
    store = S3ObjectStore(client=_FakeS3Client())

    assert store.get("bucket", "nope.yaml").status is FetchStatus.NOT_FOUND


def test_get_access_denied_raises_storage_error() -> None:
    client = _FakeS3Client()
    client.raise_on_get = _client_error("AccessDenied", 403)
    store = S3ObjectStore(client=client)

    with pytest.raises(StorageError) as excinfo:
        store.get("bucket", "stable/index.yaml")

    assert not isinstance(excinfo.value, StorageUnavailableError)


def test_get_connection_failure_is_unavailable() -> None:
    client = _FakeS3Client()
    client.raise_on_get = EndpointConnectionError(endpoint_url="https://s3")
    store = S3ObjectStore(client=client)

    with pytest.raises(StorageUnavailableError):
        store.get("bucket", "stable/index.yaml")


def test_put_throttling_is_unavailable() -> None:
    client = _FakeS3Client()
    client.raise_on_put = _client_error("SlowDown", 503, "PutObject")
    store = S3ObjectStore(client=client)

    with pytest.raises(StorageUnavailableError):
        store.put("bucket", "stable/foo-1.0.0.tgz", b"chart")


def test_put_without_etag_is_an_error() -> None:
    class _NoEtagClient(_FakeS3Client):
        def put_object(self, **kwargs: Any) -> Dict[str, Any]:
            return {}

    store = S3ObjectStore(client=_NoEtagClient())

    with pytest.raises(StorageError, match="ETag"):
        store.put("bucket", "stable/index.yaml", b"x")


def test_get_without_etag_is_an_error() -> None:
    class _NoEtagClient(_FakeS3Client):
        def get_object(self, **kwargs: Any) -> Dict[str, Any]:
            return {"Body": io.BytesIO(b"entries: {}\n")}

    store = S3ObjectStore(client=_NoEtagClient())

    with pytest.raises(StorageError, match="no ETag"):
        store.get("bucket", "stable/index.yaml")


@pytest.mark.parametrize(
    ("kwargs", "expected"),
    [
        ({}, "https://charts.s3.amazonaws.com/stable"),
        ({"region": "eu-west-1"}, "https://charts.s3.eu-west-1.amazonaws.com/stable"),
        ({"endpoint_url": "http://minio:9000/"}, "http://minio:9000/charts/stable"),
        (
            {"public_url": "https://cdn.example/charts/", "endpoint_url": "http://minio:9000"},
            "https://cdn.example/charts/stable",
        ),
    ],
)
def test_get_url_variants(kwargs: Dict[str, Any], expected: str) -> None:
    store = S3ObjectStore(client=_FakeS3Client(), **kwargs)

    assert store.get_url("charts", "/stable/") == expected


def test_build_s3_client_uses_region_endpoint_and_timeouts(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    captured: List[Dict[str, Any]] = []

    class _FakeBoto3:
        def client(self, service: str, **kwargs: Any) -> Any:
            captured.append({"service": service, **kwargs})
            return object()

    monkeypatch.setattr(s3_module, "boto3", _FakeBoto3())

    s3_module.build_s3_client(
        region="us-east-2", endpoint_url="http://minio:9000", timeout=3.0
    )

    assert captured[0]["service"] == "s3"
    assert captured[0]["region_name"] == "us-east-2"
    assert captured[0]["endpoint_url"] == "http://minio:9000"
    config = captured[0]["config"]
    assert config.connect_timeout == 3.0
    assert config.read_timeout == 3.0
    assert config.retries == {"max_attempts": 5, "mode": "standard"}


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (_client_error("ServiceUnavailable", 503), True),
        (_client_error("NoSuchBucket", 404), False),
        (RuntimeError("connection reset by peer"), True),
        (RuntimeError("bad request"), False),
    ],
)
def test_looks_like_transient_cloud_failure(exc: Exception, expected: bool) -> None:
    assert looks_like_transient_cloud_failure(exc) is expected
