"""Process-local TTL cache shared by the resolvers and query services."""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum, IntEnum
from time import monotonic
from typing import Any, Callable, Optional


class CacheTTL(IntEnum):
    """Time-to-live classes in seconds."""

    SHORT = 5 * 60
    MEDIUM = 60 * 60
    LONG = 7 * 24 * 60 * 60


class CacheKind(Enum):
    """Namespaces for cache keys; templated kinds carry an entity id."""

    ORG = ("org", False)
    PROJECTS = ("projects", False)
    CURRENT_PROJECT = ("current_project", False)
    CURRENT_PROJECT_EVENT_FILTERS = ("current_project_event_filters", False)
    PROJECT_LOOKUP = ("project_lookup", True)
    EVENT_FIELDS = ("event_fields", True)
    BUILD = ("build", True)
    RELEASE = ("release", True)
    BUILDS_IN_RELEASE = ("builds_in_release", True)
    STABILITY_TARGETS = ("stability_targets", True)

    def __init__(self, prefix: str, templated: bool) -> None:
        self.prefix = prefix
        self.templated = templated


@dataclass(frozen=True)
class CacheKey:
    """Typed cache key; ``str(key)`` is the namespaced string form."""

    kind: CacheKind
    entity_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind.templated and not self.entity_id:
            raise ValueError(f"Cache key '{self.kind.prefix}' requires an entity id.")
        if not self.kind.templated and self.entity_id is not None:
            raise ValueError(f"Cache key '{self.kind.prefix}' does not take an entity id.")

    def __str__(self) -> str:
        if self.entity_id is None:
            return self.kind.prefix
        return f"{self.kind.prefix}_{self.entity_id}"

    @classmethod
    def org(cls) -> "CacheKey":
        return cls(CacheKind.ORG)

    @classmethod
    def projects(cls) -> "CacheKey":
        return cls(CacheKind.PROJECTS)

    @classmethod
    def current_project(cls) -> "CacheKey":
        return cls(CacheKind.CURRENT_PROJECT)

    @classmethod
    def current_project_event_filters(cls) -> "CacheKey":
        return cls(CacheKind.CURRENT_PROJECT_EVENT_FILTERS)

    @classmethod
    def project_lookup(cls, project_id: str) -> "CacheKey":
        return cls(CacheKind.PROJECT_LOOKUP, str(project_id))

    @classmethod
    def event_fields(cls, project_id: str) -> "CacheKey":
        return cls(CacheKind.EVENT_FIELDS, str(project_id))

    @classmethod
    def build(cls, build_id: str) -> "CacheKey":
        return cls(CacheKind.BUILD, str(build_id))

    @classmethod
    def release(cls, release_id: str) -> "CacheKey":
        return cls(CacheKind.RELEASE, str(release_id))

    @classmethod
    def builds_in_release(cls, release_id: str) -> "CacheKey":
        return cls(CacheKind.BUILDS_IN_RELEASE, str(release_id))

    @classmethod
    def stability_targets(cls, project_id: str) -> "CacheKey":
        return cls(CacheKind.STABILITY_TARGETS, str(project_id))


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class CacheStore:
    """Thread-safe key/value store with per-entry expiry.

    Concurrent misses on the same key may both populate it; the last write
    wins. Every write prunes expired entries and then evicts the oldest
    writes beyond ``max_size``. A disabled store always misses and ignores
    writes.
    """

    def __init__(
        self,
        enabled: bool = True,
        clock: Callable[[], float] = monotonic,
        max_size: int = 1024,
    ) -> None:
        self.enabled = enabled
        self.max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()

    def get(self, key: CacheKey) -> Optional[Any]:
        if not self.enabled:
            return None
        name = str(key)
        with self._lock:
            entry = self._store.get(name)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                self._store.pop(name, None)
                return None
            return entry.value

    def set(self, key: CacheKey, value: Any, ttl_seconds: float) -> None:
        if not self.enabled:
            return
        name = str(key)
        with self._lock:
            now = self._clock()
            self._store[name] = CacheEntry(value=value, expires_at=now + ttl_seconds)
            self._store.move_to_end(name)
            self._prune(now)

    def _prune(self, now: float) -> None:
        expired = [name for name, entry in self._store.items() if entry.expires_at <= now]
        for name in expired:
            self._store.pop(name, None)
        while len(self._store) > self.max_size:
            self._store.popitem(last=False)

    def delete(self, key: CacheKey) -> None:
        with self._lock:
            self._store.pop(str(key), None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
