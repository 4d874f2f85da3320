# src/cache/lru_store.py - v1
"""In-memory LRU store with per-entry TTL.

Recency is updated on every successful ``get``. Removals caused by expiry or
capacity report through ``on_remove(key, value, reason)`` synchronously, in
the same call that removed the item, so owners can keep side indexes
consistent.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Generic, Iterator, Literal, TypeVar

V = TypeVar("V")

RemovalReason = Literal["expired", "evicted", "deleted"]
RemovalCallback = Callable[[str, V, RemovalReason], None]


class LRUTTLStore(Generic[V]):
    """Size-bounded, TTL-bounded mapping of str keys to values."""

    def __init__(
        self,
        max_size: int,
        default_ttl: float | None = None,
        clock: Callable[[], float] = time.time,
        on_remove: RemovalCallback | None = None,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._on_remove = on_remove
        self._data: OrderedDict[str, tuple[V, float | None]] = OrderedDict()

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: str) -> V | None:
        """Return the live value for ``key`` and mark it most recently used."""
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            self._remove(key, "expired")
            return None
        self._data.move_to_end(key)
        return value

    def peek(self, key: str) -> V | None:
        """Return the live value without touching recency."""
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            return None
        return value

    def set(self, key: str, value: V, ttl: float | None = None) -> float | None:
        """Insert or replace ``key``; returns the absolute expiry time."""
        ttl = self._default_ttl if ttl is None else ttl
        expires_at = None if ttl is None else self._clock() + ttl
        if key in self._data:
            del self._data[key]
        self._data[key] = (value, expires_at)
        while len(self._data) > self._max_size:
            oldest = next(iter(self._data))
            self._remove(oldest, "evicted")
        return expires_at

    def touch(self, key: str) -> None:
        """Mark ``key`` most recently used."""
        if key in self._data:
            self._data.move_to_end(key)

    def delete(self, key: str) -> bool:
        if key not in self._data:
            return False
        self._remove(key, "deleted")
        return True

    def purge_expired(self) -> int:
        """Remove all expired entries; returns how many were removed."""
        now = self._clock()
        expired = [
            k for k, (_, exp) in self._data.items() if exp is not None and now >= exp
        ]
        for key in expired:
            self._remove(key, "expired")
        return len(expired)

    def clear(self) -> None:
        """Drop everything without firing removal callbacks."""
        self._data.clear()

    def items(self) -> Iterator[tuple[str, V]]:
        """Iterate live items, least recently used first."""
        now = self._clock()
        for key, (value, exp) in list(self._data.items()):
            if exp is None or now < exp:
                yield key, value

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def _remove(self, key: str, reason: RemovalReason) -> None:
        value, _ = self._data.pop(key)
        if self._on_remove is not None:
            self._on_remove(key, value, reason)
