"""In-memory TTL cache.

This cache is process-local. It is safe for concurrent access from threads
inside the same Python process, but it is not shared across workers/instances.
A write in one process does not invalidate the copy held by another; use an
external cache backend (e.g. Redis) if you need global coherence.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from core.expiring import ExpiringMap

V = TypeVar("V")

DEFAULT_TTL_SECONDS = 300


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    stored_at: float
    expires_at: float


class TTLCache(Generic[V]):
    def __init__(
        self,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        time_func: Callable[[], float] = time.time,
    ):
        self._default_ttl_seconds = float(default_ttl_seconds)
        self._entries: ExpiringMap[CacheEntry[V]] = ExpiringMap(time_func=time_func)

    @property
    def default_ttl_seconds(self) -> float:
        return self._default_ttl_seconds

    def get(self, key: str, default: Any = None) -> Any:
        """Cached value, or ``default`` when the key is unset or expired.

        Pass ``default=MISSING`` to tell a miss apart from a cached ``None``.
        """
        entry = self._entries.get(key, MISSING)
        if entry is MISSING:
            return default
        return entry.value

    def get_entry(self, key: str) -> Optional[CacheEntry[V]]:
        entry = self._entries.get(key, MISSING)
        return None if entry is MISSING else entry

    def set(self, key: str, value: V, ttl_seconds: Optional[float] = None) -> None:
        ttl = self._default_ttl_seconds if ttl_seconds is None else float(ttl_seconds)
        now = self._entries.now()
        entry = CacheEntry(value=value, stored_at=now, expires_at=now + ttl)
        self._entries.put(key, entry, entry.expires_at)

    def get_or_set(self, key: str, factory: Callable[[], V], ttl_seconds: Optional[float] = None) -> V:
        cached = self.get(key, MISSING)
        if cached is not MISSING:
            return cached
        value = factory()
        self.set(key, value, ttl_seconds=ttl_seconds)
        return value

    def invalidate(self, key: str) -> None:
        self._entries.pop(key)

    def invalidate_all(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Force a full cleanup pass and return the number of removed keys."""
        return self._entries.sweep()

    def __len__(self) -> int:
        # includes expired entries not yet swept
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
