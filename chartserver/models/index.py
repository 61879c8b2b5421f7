"""
ChartServer Repository
Introductory remarks: This module is part of the ChartServer codebase.

Repository index documents and the merge/sort rules applied on publish.

An index groups chart versions by chart name. Two indexes merge as a union
over ``(name, version)``; when both sides carry the same key the incoming
entry replaces the existing one, so republishing a version overwrites its
record. Documents are treated as values: ``merge`` and ``sort_entries``
return new documents and never mutate their inputs, which lets the cache
hand the same instance to concurrent readers.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import yaml

from chartserver.config import INDEX_API_VERSION
from chartserver.errors import IndexDecodeError, SerializationError

from .charts import ChartMetadata

_FRACTION_RE = re.compile(r"\.(\d+)")
_SEMVER_RE = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as RFC 3339 text in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat()
    return text.replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime:
    """Parse RFC 3339 timestamps as written by this server or by Go tools.

    YAML loaders may already have produced a ``datetime``; strings may carry
    a trailing ``Z`` and nanosecond fractions.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid timestamp {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(_microseconds, text)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _microseconds(match: "re.Match[str]") -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def _prerelease_key(prerelease: str) -> Tuple[Tuple[int, int, str], ...]:
    # Numeric identifiers rank below alphanumeric ones and compare as numbers.
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in prerelease.split(".")
    )


def version_sort_key(version: str) -> Tuple[int, Tuple[Any, ...], str]:
    """Ordering key for chart versions by semantic version precedence.

    A release ranks above its prereleases and build metadata is ignored.
    Chart tooling also accepts a leading ``v`` and omitted minor or patch
    numbers. Strings that are not semantic versions rank below every
    semantic version; ties fall back to the raw string so ordering stays
    reproducible.
    """
    match = _SEMVER_RE.match(version.strip())
    if match is None:
        return (0, (), version)
    prerelease = match.group("prerelease")
    precedence = (
        int(match.group("major")),
        int(match.group("minor") or 0),
        int(match.group("patch") or 0),
        0 if prerelease else 1,
        _prerelease_key(prerelease) if prerelease else (),
    )
    return (1, precedence, version)


@dataclass(frozen=True)
class ChartVersion:
    """One published chart version inside an index."""

    metadata: ChartMetadata
    urls: Tuple[str, ...] = ()
    digest: str = ""
    created: datetime = field(default_factory=utcnow)
    removed: bool = False

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version

    @property
    def key(self) -> Tuple[str, str]:
        return self.metadata.key

    def to_dict(self) -> Dict[str, Any]:
        payload = self.metadata.to_dict()
        payload["urls"] = list(self.urls)
        payload["created"] = format_timestamp(self.created)
        if self.digest:
            payload["digest"] = self.digest
        if self.removed:
            payload["removed"] = True
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChartVersion":
        urls = payload.get("urls") or []
        if isinstance(urls, str):
            urls = [urls]
        created = payload.get("created")
        return cls(
            metadata=ChartMetadata.from_dict(payload),
            urls=tuple(str(url) for url in urls),
            digest=str(payload.get("digest") or ""),
            created=parse_timestamp(created) if created else utcnow(),
            removed=bool(payload.get("removed", False)),
        )


@dataclass
class IndexFile:
    """The manifest of every chart version published to a repository."""

    api_version: str = INDEX_API_VERSION
    generated: datetime = field(default_factory=utcnow)
    entries: Dict[str, List[ChartVersion]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "IndexFile":
        return cls()

    def __len__(self) -> int:
        return sum(len(versions) for versions in self.entries.values())

    def __iter__(self) -> Iterator[ChartVersion]:
        for versions in self.entries.values():
            yield from versions

    def add(
        self,
        metadata: ChartMetadata,
        filename: str,
        base_url: str,
        digest: str,
    ) -> ChartVersion:
        """Append an entry for ``metadata`` downloadable at ``base_url``."""
        url = filename
        if base_url:
            url = join_url(base_url, posixpath.basename(filename))
        entry = ChartVersion(metadata=metadata, urls=(url,), digest=digest)
        self.entries.setdefault(metadata.name, []).append(entry)
        return entry

    def has(self, name: str, version: str) -> bool:
        return any(v.version == version for v in self.entries.get(name, ()))

    def versions(self, name: str) -> List[str]:
        return [v.version for v in self.entries.get(name, ())]

    def get(self, name: str, version: Optional[str] = None) -> ChartVersion:
        """Return one entry; the newest version when ``version`` is omitted."""
        candidates = self.entries.get(name)
        if not candidates:
            raise KeyError(f"No chart named '{name}' in index")
        if version is None:
            return max(candidates, key=lambda v: version_sort_key(v.version))
        for candidate in candidates:
            if candidate.version == version:
                return candidate
        raise KeyError(f"No version '{version}' of chart '{name}' in index")

    def merge(self, incoming: "IndexFile") -> "IndexFile":
        """Return the union of both indexes; ``incoming`` wins on collision.

        The result is unsorted; run :meth:`sort_entries` before serving it.
        """
        merged: Dict[str, List[ChartVersion]] = {
            name: list(versions) for name, versions in self.entries.items()
        }
        for name, versions in incoming.entries.items():
            existing = merged.setdefault(name, [])
            for entry in versions:
                existing[:] = [v for v in existing if v.version != entry.version]
                existing.append(entry)
        return IndexFile(
            api_version=self.api_version or incoming.api_version,
            generated=utcnow(),
            entries=merged,
        )

    def sort_entries(self) -> "IndexFile":
        """Return a copy with names in order and versions newest-first."""
        ordered = {
            name: sorted(
                self.entries[name],
                key=lambda v: version_sort_key(v.version),
                reverse=True,
            )
            for name in sorted(self.entries)
        }
        return replace(self, entries=ordered)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "entries": {
                name: [v.to_dict() for v in self.entries[name]]
                for name in sorted(self.entries)
            },
            "generated": format_timestamp(self.generated),
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "IndexFile":
        if payload is None:
            return cls.empty()
        if not isinstance(payload, Mapping):
            raise IndexDecodeError("Index document must be a mapping")
        raw_entries = payload.get("entries") or {}
        if not isinstance(raw_entries, Mapping):
            raise IndexDecodeError("Index 'entries' must be a mapping")

        entries: Dict[str, List[ChartVersion]] = {}
        for name, raw_versions in raw_entries.items():
            if not isinstance(raw_versions, list):
                raise IndexDecodeError(
                    f"Index entries for '{name}' must be a list"
                )
            if not all(isinstance(item, Mapping) for item in raw_versions):
                raise IndexDecodeError(
                    f"Index entries for '{name}' must be mappings"
                )
            try:
                entries[str(name)] = [
                    ChartVersion.from_dict(item) for item in raw_versions
                ]
            except (TypeError, ValueError) as exc:
                raise IndexDecodeError(
                    f"Invalid index entry for chart '{name}': {exc}"
                ) from exc

        generated = payload.get("generated")
        try:
            generated_at = parse_timestamp(generated) if generated else utcnow()
        except ValueError as exc:
            raise IndexDecodeError(
                f"Invalid index generation timestamp: {exc}"
            ) from exc
        return cls(
            api_version=str(payload.get("apiVersion") or INDEX_API_VERSION),
            generated=generated_at,
            entries=entries,
        )

    def to_yaml(self) -> bytes:
        try:
            text = yaml.safe_dump(
                self.to_dict(),
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )
        except yaml.YAMLError as exc:
            raise SerializationError(f"Failed to encode index: {exc}") from exc
        return text.encode("utf-8")

    @classmethod
    def from_yaml(cls, body: bytes | str) -> "IndexFile":
        try:
            payload = yaml.safe_load(body)
        except yaml.YAMLError as exc:
            raise IndexDecodeError(f"Failed to decode index: {exc}") from exc
        return cls.from_dict(payload)


def join_url(base_url: str, *parts: str) -> str:
    """Join URL path segments onto ``base_url`` with single slashes."""
    url = base_url.rstrip("/")
    for part in parts:
        part = part.strip("/")
        if part:
            url = f"{url}/{part}"
    return url
