"""
ChartServer Repository
Introductory remarks: This module is part of the ChartServer codebase.

Named chart repositories and their storage coordinates.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping

import yaml

from .config import INDEX_FILENAME, Settings
from .errors import (ConfigurationError, InvalidFilenameError,
                     RepositoryNotFoundError)

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Repository:
    """A chart repository stored under ``prefix`` inside ``bucket``."""

    name: str
    bucket: str
    prefix: str = ""

    def path(self, filename: str) -> str:
        """Object key of ``filename`` inside this repository.

        Absolute names and names with ``..`` segments are rejected so an
        object can never land outside the repository prefix.
        """
        if (
            not filename
            or filename.startswith("/")
            or ".." in filename.split("/")
        ):
            raise InvalidFilenameError(
                f"Invalid filename '{filename}' for repository '{self.name}'"
            )
        prefix = self.prefix.strip("/")
        if not prefix:
            return posixpath.normpath(filename)
        return posixpath.normpath(posixpath.join(prefix, filename))

    def chart_path(self, filename: str) -> str:
        """Object key for an uploaded chart archive.

        Charts live directly below the prefix and may not replace the index.
        """
        if "/" in filename or filename in {"", ".", INDEX_FILENAME}:
            raise InvalidFilenameError(
                f"Invalid chart filename '{filename}' for repository '{self.name}'"
            )
        return self.path(filename)

    @property
    def index_path(self) -> str:
        return self.path(INDEX_FILENAME)


class RepositoryRegistry:
    """Read-only lookup of repositories by name, built once at startup."""

    def __init__(self, repositories: Iterable[Repository]) -> None:
        self._repositories: Dict[str, Repository] = {}
        for repository in repositories:
            if repository.name in self._repositories:
                raise ConfigurationError(
                    f"Repository '{repository.name}' is configured twice"
                )
            self._repositories[repository.name] = repository

    def get(self, name: str) -> Repository:
        try:
            return self._repositories[name]
        except KeyError as exc:
            raise RepositoryNotFoundError(
                f"Repository '{name}' does not exist"
            ) from exc

    def names(self) -> List[str]:
        return list(self._repositories)

    def __iter__(self) -> Iterator[Repository]:
        return iter(self._repositories.values())

    def __len__(self) -> int:
        return len(self._repositories)

    def __contains__(self, name: object) -> bool:
        return name in self._repositories


def decode_repositories(raw: Any) -> List[Repository]:
    """Decode repository definitions from configuration data.

    Accepts either a list of ``{name, bucket, directory}`` mappings or a
    mapping of ``name -> {bucket, directory}``. ``prefix`` is accepted as
    an alias of ``directory``.
    """
    if raw is None:
        return []
    items: List[Mapping[str, Any]]
    if isinstance(raw, Mapping):
        items = []
        for name, value in raw.items():
            if not isinstance(value, Mapping):
                raise ConfigurationError(
                    f"Repository '{name}' must be a mapping"
                )
            items.append({"name": name, **value})
    elif isinstance(raw, list):
        items = raw
    else:
        raise ConfigurationError(
            "Repositories must be a list or a mapping of definitions"
        )

    repositories: List[Repository] = []
    for position, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ConfigurationError(
                f"Repository definition #{position} must be a mapping"
            )
        name = str(item.get("name") or "").strip()
        bucket = str(item.get("bucket") or "").strip()
        if not name:
            raise ConfigurationError(
                f"Repository definition #{position} has no name"
            )
        if not bucket:
            raise ConfigurationError(f"Repository '{name}' has no bucket")
        prefix = item.get("directory", item.get("prefix")) or ""
        repositories.append(
            Repository(name=name, bucket=bucket, prefix=str(prefix).strip("/"))
        )
    return repositories


def load_repositories(settings: Settings) -> RepositoryRegistry:
    """Build the registry from the configured file or inline definition."""

    if settings.repositories_file is not None:
        source = str(settings.repositories_file)
        try:
            text = Path(settings.repositories_file).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot read repositories file '{source}': {exc}"
            ) from exc
    elif settings.repositories_inline is not None:
        source = "CHART_REPOSITORIES"
        text = settings.repositories_inline
    else:
        raise ConfigurationError(
            "No repositories configured; set CHART_REPOSITORIES_FILE "
            "or CHART_REPOSITORIES"
        )

    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Repositories in {source} are not valid YAML: {exc}"
        ) from exc
    if isinstance(payload, Mapping) and "repositories" in payload:
        payload = payload["repositories"]

    registry = RepositoryRegistry(decode_repositories(payload))
    _LOGGER.info(
        "Loaded %d repositories from %s: %s",
        len(registry),
        source,
        ", ".join(registry.names()),
    )
    return registry
