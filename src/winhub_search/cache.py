"""In-memory key/value cache with a fixed time-to-live."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    value: T
    stored_at: float


def make_cache_key(query: str, page: int | str, limit: int | str) -> str:
    """Key repository results by lowercased query plus paging, e.g. ``discord_0_20``."""
    return f"{query.lower()}_{page}_{limit}"


class TTLCache(Generic[T]):
    """Unbounded dict-backed cache whose entries expire `ttl` seconds after being stored.

    Stale entries are evicted lazily: a `get` on an expired key removes it and
    behaves exactly like a miss. `clock` is injectable so tests can move time
    forward without sleeping.
    """

    def __init__(self, ttl: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl <= 0:
            msg = "ttl must be positive"
            raise ValueError(msg)
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def get(self, key: str, default: Any = None) -> T | Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        if self._clock() - entry.stored_at >= self.ttl:
            del self._entries[key]
            return default
        return entry.value

    def set(self, key: str, value: T) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
