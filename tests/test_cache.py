"""Tests for the TTL cache store and typed cache keys."""

import sys
import threading
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bugsnag_tools.cache import CacheKey, CacheKind, CacheStore, CacheTTL


class _FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_get_returns_value_until_ttl_expires():
    """Verify entries are served within their TTL and miss afterwards."""
    clock = _FakeClock()
    cache = CacheStore(clock=clock)
    cache.set(CacheKey.org(), {"id": "org-1"}, CacheTTL.SHORT)

    clock.now += CacheTTL.SHORT - 1
    assert cache.get(CacheKey.org()) == {"id": "org-1"}

    clock.now += 1
    assert cache.get(CacheKey.org()) is None
    assert len(cache) == 0


def test_set_overwrites_existing_entry():
    """Verify a later write replaces the earlier value (last write wins)."""
    cache = CacheStore()
    cache.set(CacheKey.projects(), ["a"], CacheTTL.MEDIUM)
    cache.set(CacheKey.projects(), ["b"], CacheTTL.MEDIUM)

    assert cache.get(CacheKey.projects()) == ["b"]


def test_disabled_cache_always_misses():
    """Verify a disabled store ignores writes."""
    cache = CacheStore(enabled=False)
    cache.set(CacheKey.org(), {"id": "org-1"}, CacheTTL.LONG)

    assert cache.get(CacheKey.org()) is None


def test_delete_and_clear_remove_entries():
    """Verify entries can be removed individually or all at once."""
    cache = CacheStore()
    cache.set(CacheKey.build("b1"), {"id": "b1"}, CacheTTL.SHORT)
    cache.set(CacheKey.release("r1"), {"id": "r1"}, CacheTTL.SHORT)

    cache.delete(CacheKey.build("b1"))
    assert cache.get(CacheKey.build("b1")) is None
    assert cache.get(CacheKey.release("r1")) == {"id": "r1"}

    cache.clear()
    assert len(cache) == 0


def test_cache_key_string_forms_are_namespaced():
    """Verify static and templated keys render to distinct namespaced strings."""
    assert str(CacheKey.org()) == "org"
    assert str(CacheKey.current_project_event_filters()) == "current_project_event_filters"
    assert str(CacheKey.build("123")) == "build_123"
    assert str(CacheKey.stability_targets("p1")) == "stability_targets_p1"
    assert str(CacheKey.project_lookup("p1")) == "project_lookup_p1"
    assert str(CacheKey.build("1")) != str(CacheKey.release("1"))


def test_cache_key_rejects_missing_or_unexpected_entity_id():
    """Verify templated kinds require an id and static kinds refuse one."""
    with pytest.raises(ValueError):
        CacheKey(CacheKind.BUILD)
    with pytest.raises(ValueError):
        CacheKey(CacheKind.ORG, "1")


def test_ttl_classes_are_ordered():
    """Verify the TTL classes grow from short to long."""
    assert CacheTTL.SHORT == 300
    assert CacheTTL.MEDIUM == 3600
    assert CacheTTL.SHORT < CacheTTL.MEDIUM < CacheTTL.LONG


def test_concurrent_writes_do_not_corrupt_store():
    """Verify concurrent set/get on the same key leaves one consistent value."""
    cache = CacheStore()
    key = CacheKey.projects()

    def _writer(value: int) -> None:
        for _ in range(200):
            cache.set(key, value, CacheTTL.MEDIUM)
            assert cache.get(key) in range(8)

    threads = [threading.Thread(target=_writer, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert cache.get(key) in range(8)
    assert len(cache) == 1


def test_set_prunes_expired_entries_with_entity_ids():
    """Verify a later write removes expired id-keyed entries that were never read again."""
    clock = _FakeClock()
    cache = CacheStore(clock=clock)
    for build_id in range(1000):
        cache.set(CacheKey.build(str(build_id)), {"id": build_id}, CacheTTL.SHORT)

    clock.now += 10_000
    cache.set(CacheKey.org(), {"id": "org-1"}, CacheTTL.LONG)

    assert len(cache) == 1
    assert cache.get(CacheKey.org()) == {"id": "org-1"}


def test_set_evicts_oldest_entries_beyond_max_size():
    """Verify the store keeps at most max_size entries, dropping the oldest writes."""
    cache = CacheStore(max_size=2)
    cache.set(CacheKey.build("1"), 1, CacheTTL.SHORT)
    cache.set(CacheKey.build("2"), 2, CacheTTL.SHORT)
    cache.set(CacheKey.build("3"), 3, CacheTTL.SHORT)

    assert len(cache) == 2
    assert cache.get(CacheKey.build("1")) is None
    assert cache.get(CacheKey.build("3")) == 3
