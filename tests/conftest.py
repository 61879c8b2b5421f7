"""
ChartServer Repository
Introductory remarks: This module is part of the ChartServer codebase.

Shared fixtures for the chart server tests.
"""

from __future__ import annotations

import io
import tarfile
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import pytest
import yaml

from chartserver.utils import env


def build_chart_archive(
    name: str = "foo",
    version: str = "1.0.0",
    *,
    extra: Optional[Dict[str, Any]] = None,
    chart_yaml: Optional[bytes] = None,
    directory: Optional[str] = None,
    files: Optional[Dict[str, bytes]] = None,
) -> bytes:
    """
    build_chart_archive: Package a minimal chart as a gzip tarball.
    :param name:
    :param version:
    :param extra:
    :param chart_yaml:
    :param directory:
    :param files:
    :returns:
    """

    if chart_yaml is None:
        payload: Dict[str, Any] = {
            "apiVersion": "v1",
            "name": name,
            "version": version,
            "description": f"{name} chart",
        }
        payload.update(extra or {})
        chart_yaml = yaml.safe_dump(payload).encode("utf-8")
    root = directory if directory is not None else name
    members: Dict[str, bytes] = {f"{root}/Chart.yaml": chart_yaml}
    members[f"{root}/values.yaml"] = b"replicaCount: 1\n"
    members.update(files or {})

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for member_name, data in members.items():
            info = tarfile.TarInfo(member_name)
            info.size = len(data)
            info.mtime = 0
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


@pytest.fixture
def chart_archive() -> Callable[..., bytes]:
    """
    chart_archive: Factory fixture returning packaged chart bytes.
    :param:
    :returns:
    """

    return build_chart_archive


@pytest.fixture(autouse=True)
def _isolated_env(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path_factory: pytest.TempPathFactory,
) -> None:
    """
    _isolated_env: Keep tests independent of the developer's environment.
    :param monkeypatch:
    :param tmp_path_factory:
    :returns:
    """

    monkeypatch.setattr(env, "_ENV_LOADED", True)
    for name in (
        "CHART_STORAGE_BACKEND",
        "CHART_STORAGE_DIR",
        "CHART_STORAGE_ENDPOINT",
        "CHART_STORAGE_REGION",
        "CHART_STORAGE_PUBLIC_URL",
        "CHART_STORAGE_TIMEOUT",
        "CHART_REPOSITORIES_FILE",
        "CHART_REPOSITORIES",
        "CHART_SERIALIZE_PUBLISHES",
        "AWS_REGION",
        "AWS_DEFAULT_REGION",
    ):
        monkeypatch.delenv(name, raising=False)
    log_dir = tmp_path_factory.mktemp("logs")
    monkeypatch.setenv("LOG_FILE", str(Path(log_dir) / "chartserver.log"))
