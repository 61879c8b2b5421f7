"""
ChartServer Repository
Introductory remarks: This module is part of the ChartServer codebase.

Chart metadata as declared in a chart's Chart.yaml.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple


def validate_chart_name(name: Any) -> str:
    """Ensure chart names are non-empty strings."""
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Chart name cannot be empty")
    return name


def validate_chart_version(version: Any) -> str:
    """Ensure chart versions are non-empty strings."""
    if not isinstance(version, str) or not version.strip():
        raise ValueError("Chart version cannot be empty")
    return version


@dataclass(frozen=True)
class Maintainer:
    """A person responsible for a chart."""

    name: str
    email: str = ""
    url: str = ""

    def to_dict(self) -> Dict[str, str]:
        return _without_empty(
            {"name": self.name, "email": self.email, "url": self.url}
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Maintainer":
        return cls(
            name=_as_str(payload.get("name")),
            email=_as_str(payload.get("email")),
            url=_as_str(payload.get("url")),
        )


# Python attribute -> Chart.yaml key, for the plain string fields.
_STRING_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("description", "description"),
    ("api_version", "apiVersion"),
    ("app_version", "appVersion"),
    ("home", "home"),
    ("icon", "icon"),
    ("engine", "engine"),
    ("condition", "condition"),
    ("tags", "tags"),
    ("tiller_version", "tillerVersion"),
    ("kube_version", "kubeVersion"),
)


@dataclass(frozen=True)
class ChartMetadata:
    """Descriptive fields of a single chart version."""

    name: str
    version: str
    description: str = ""
    api_version: str = ""
    app_version: str = ""
    home: str = ""
    icon: str = ""
    engine: str = ""
    condition: str = ""
    tags: str = ""
    tiller_version: str = ""
    kube_version: str = ""
    deprecated: bool = False
    keywords: Tuple[str, ...] = ()
    sources: Tuple[str, ...] = ()
    maintainers: Tuple[Maintainer, ...] = ()
    annotations: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        validate_chart_name(self.name)
        validate_chart_version(self.version)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.name, self.version)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using Chart.yaml key names, omitting empty values."""
        payload: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
        }
        for attr, key in _STRING_FIELDS:
            payload[key] = getattr(self, attr)
        payload["deprecated"] = self.deprecated
        payload["keywords"] = list(self.keywords)
        payload["sources"] = list(self.sources)
        payload["maintainers"] = [m.to_dict() for m in self.maintainers]
        payload["annotations"] = dict(self.annotations)
        return _without_empty(payload)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChartMetadata":
        """Build metadata from a Chart.yaml or index entry mapping.

        Raises ``ValueError`` when name or version is missing.
        """
        kwargs: Dict[str, Any] = {
            "name": validate_chart_name(payload.get("name")),
            "version": _version_text(payload.get("version")),
        }
        for attr, key in _STRING_FIELDS:
            kwargs[attr] = _as_str(payload.get(key))
        kwargs["deprecated"] = bool(payload.get("deprecated", False))
        kwargs["keywords"] = _str_tuple(payload.get("keywords"))
        kwargs["sources"] = _str_tuple(payload.get("sources"))
        maintainers = payload.get("maintainers") or []
        if not isinstance(maintainers, list):
            raise ValueError("Chart maintainers must be a list")
        kwargs["maintainers"] = tuple(
            Maintainer.from_dict(item)
            for item in maintainers
            if isinstance(item, Mapping)
        )
        annotations = payload.get("annotations") or {}
        if not isinstance(annotations, Mapping):
            raise ValueError("Chart annotations must be a mapping")
        kwargs["annotations"] = {
            str(k): _as_str(v) for k, v in annotations.items()
        }
        return cls(**kwargs)


def _version_text(value: Any) -> str:
    # YAML reads unquoted versions such as 1.0 as floats.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    return validate_chart_version(value)


def _as_str(value: Optional[Any]) -> str:
    if value is None:
        return ""
    return str(value)


def _str_tuple(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list):
        raise ValueError(f"Expected a list of strings, got {type(value).__name__}")
    return tuple(str(item) for item in value)


def _without_empty(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value
        for key, value in payload.items()
        if value not in ("", None, False, [], {})
    }
