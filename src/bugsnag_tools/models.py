"""Domain models for BugSnag organizations, projects and query results.

Organization and project payloads keep the full upstream record in ``raw`` so
tool output is not truncated; the typed attributes are the subset the
resolvers depend on. Error, event, build and release records are passed
through as plain dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(slots=True)
class Organization:
    """Represents an organization visible to the configured auth token."""

    id: str
    slug: str
    name: str
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Organization":
        return cls(
            id=str(payload.get("id", "")),
            slug=str(payload.get("slug", "")),
            name=str(payload.get("name", "")),
            raw=dict(payload),
        )


@dataclass(slots=True)
class Project:
    """Represents a monitored project within an organization."""

    id: str
    slug: str
    name: str
    api_key: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Project":
        return cls(
            id=str(payload.get("id", "")),
            slug=str(payload.get("slug", "")),
            name=str(payload.get("name", "")),
            api_key=payload.get("api_key"),
            raw=dict(payload),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.raw)
        data.update({"id": self.id, "slug": self.slug, "name": self.name})
        return data


@dataclass(slots=True)
class EventField:
    """One filterable and pivotable dimension of a project's event data."""

    display_id: str
    custom: bool = False
    filter_options: Dict[str, Any] = field(default_factory=dict)
    pivot_options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "EventField":
        return cls(
            display_id=str(payload.get("display_id") or ""),
            custom=bool(payload.get("custom", False)),
            filter_options=payload.get("filter_options") or {},
            pivot_options=payload.get("pivot_options") or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display_id": self.display_id,
            "custom": self.custom,
            "filter_options": self.filter_options,
            "pivot_options": self.pivot_options,
        }


@dataclass(slots=True)
class StabilityTargets:
    """Project-level stability thresholds used to judge builds and releases."""

    stability_target_type: str
    target_stability: float
    critical_stability: float

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "StabilityTargets":
        target = payload.get("target_stability") or {}
        critical = payload.get("critical_stability") or {}
        return cls(
            stability_target_type=payload.get("stability_target_type") or "user",
            target_stability=float(target.get("value") or 0),
            critical_stability=float(critical.get("value") or 0),
        )


@dataclass(slots=True)
class PageResult:
    """One page of a list query plus its continuation data."""

    data: List[Any]
    count: int
    total: Optional[int] = None
    next_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"data": self.data, "count": self.count}
        if self.total is not None:
            result["total"] = self.total
        if self.next_url is not None:
            result["next"] = self.next_url
        return result


class EnrichmentStatus(str, Enum):
    AVAILABLE = "available"
    EMPTY = "empty"
    UNAVAILABLE = "unavailable"


@dataclass(slots=True)
class Enrichment:
    """Outcome of a best-effort sub-fetch attached to a primary result.

    A failed primary fetch is never represented here; it raises instead.
    """

    status: EnrichmentStatus
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def available(cls, value: Any) -> "Enrichment":
        return cls(status=EnrichmentStatus.AVAILABLE, value=value)

    @classmethod
    def empty(cls) -> "Enrichment":
        return cls(status=EnrichmentStatus.EMPTY)

    @classmethod
    def unavailable(cls, error: BaseException) -> "Enrichment":
        return cls(status=EnrichmentStatus.UNAVAILABLE, error=str(error))

    @property
    def is_available(self) -> bool:
        return self.status is EnrichmentStatus.AVAILABLE
