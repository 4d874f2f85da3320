# tests/unit/cache/test_lru_store.py - v1
"""Tests for cache/lru_store.py - LRU ordering, TTL and removal callbacks."""

from __future__ import annotations

import pytest

from semkb.cache.lru_store import LRUTTLStore


@pytest.fixture
def removed():
    return []


@pytest.fixture
def store(clock, removed):
    return LRUTTLStore(
        max_size=2,
        default_ttl=10.0,
        clock=clock,
        on_remove=lambda key, value, reason: removed.append((key, reason)),
    )


class TestLRUTTLStore:
    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            LRUTTLStore(max_size=0)

    def test_set_and_get(self, store):
        store.set("a", 1)
        assert store.get("a") == 1
        assert "a" in store
        assert len(store) == 1

    def test_evicts_least_recently_used(self, store, removed):
        store.set("a", 1)
        store.set("b", 2)
        store.get("a")
        store.set("c", 3)
        assert "b" not in store
        assert removed == [("b", "evicted")]

    def test_touch_updates_recency(self, store, removed):
        store.set("a", 1)
        store.set("b", 2)
        store.touch("a")
        store.set("c", 3)
        assert removed == [("b", "evicted")]

    def test_expiry_on_get(self, store, clock, removed):
        store.set("a", 1, ttl=1.0)
        clock.advance(1.5)
        assert store.get("a") is None
        assert removed == [("a", "expired")]
        assert len(store) == 0

    def test_peek_does_not_remove_or_touch(self, store, clock):
        store.set("a", 1)
        store.set("b", 2)
        assert store.peek("a") == 1
        store.set("c", 3)
        assert "a" not in store

    def test_replace_is_silent(self, store, removed):
        store.set("a", 1)
        store.set("a", 2)
        assert store.get("a") == 2
        assert removed == []

    def test_purge_expired(self, store, clock, removed):
        store.set("a", 1, ttl=1.0)
        store.set("b", 2, ttl=100.0)
        clock.advance(5)
        assert store.purge_expired() == 1
        assert removed == [("a", "expired")]

    def test_delete(self, store, removed):
        store.set("a", 1)
        assert store.delete("a") is True
        assert store.delete("a") is False
        assert removed == [("a", "deleted")]

    def test_clear_fires_no_callbacks(self, store, removed):
        store.set("a", 1)
        store.clear()
        assert len(store) == 0
        assert removed == []

    def test_items_skip_expired(self, store, clock):
        store.set("a", 1, ttl=1.0)
        store.set("b", 2)
        clock.advance(2)
        assert list(store.items()) == [("b", 2)]

    def test_set_returns_expiry(self, store, clock):
        assert store.set("a", 1, ttl=5.0) == clock.now + 5.0
