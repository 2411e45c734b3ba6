"""Process-local expiring map and the background sweeper shared by the stores.

Every entry is stored as ``(expires_at, value)``. Reads treat an entry as
absent once ``now >= expires_at``; the sweep only bounds memory for keys that
are never read again.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Callable, Dict, Generic, Mapping, Optional, Tuple, TypeVar

V = TypeVar("V")
R = TypeVar("R")

logger = logging.getLogger("lumina-api")


class ExpiringMap(Generic[V]):
    def __init__(self, time_func: Callable[[], float] = time.time):
        self._store: Dict[str, Tuple[float, V]] = {}
        self._lock = threading.RLock()
        self._time_func = time_func

    def now(self) -> float:
        return self._time_func()

    def get_entry(self, key: str) -> Optional[Tuple[float, V]]:
        """Raw ``(expires_at, value)`` pair, expired or not."""
        with self._lock:
            return self._store.get(key)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            item = self._store.get(key)
            if item is None:
                return default
            expires_at, value = item
            if self._time_func() >= expires_at:
                self._store.pop(key, None)
                return default
            return value

    def put(self, key: str, value: V, expires_at: float) -> None:
        with self._lock:
            self._store[key] = (expires_at, value)

    def update(
        self,
        key: str,
        fn: Callable[[Optional[Tuple[float, V]], float], Tuple[Tuple[float, V], R]],
    ) -> R:
        """Atomic read-modify-write of one key.

        ``fn`` receives the current raw entry (or None) and the current time and
        returns the replacement entry plus a result passed back to the caller.
        """
        with self._lock:
            now = self._time_func()
            entry, result = fn(self._store.get(key), now)
            self._store[key] = entry
            return result

    def pop(self, key: str) -> Optional[V]:
        with self._lock:
            item = self._store.pop(key, None)
        return None if item is None else item[1]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def sweep(self) -> int:
        """Remove expired entries and return how many were dropped.

        The scan works on a snapshot; each removal re-takes the lock and
        re-checks expiry, so an entry replaced after the snapshot is kept.
        """
        with self._lock:
            snapshot = list(self._store.items())

        now = self._time_func()
        removed = 0
        for key, (expires_at, _) in snapshot:
            if now < expires_at:
                continue
            with self._lock:
                current = self._store.get(key)
                if current is not None and now >= current[0]:
                    del self._store[key]
                    removed += 1
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            item = self._store.get(key)  # type: ignore[arg-type]
            return item is not None and self._time_func() < item[0]


class PeriodicSweeper:
    """Runs ``sweep()`` on a set of named stores at a fixed interval.

    The task is bound to the event loop that calls ``start()`` and must be
    stopped with ``await stop()`` before that loop closes.
    """

    def __init__(self, stores: Mapping[str, Any], interval_seconds: float = 60.0):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._stores = dict(stores)
        self._interval_seconds = float(interval_seconds)
        self._task: Optional[asyncio.Task] = None

    @property
    def interval_seconds(self) -> float:
        return self._interval_seconds

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> Dict[str, int]:
        removed: Dict[str, int] = {}
        for name, store in self._stores.items():
            try:
                removed[name] = store.sweep()
            except Exception:
                logger.exception("store_sweep_failed", extra={"store": name})
                removed[name] = 0
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            removed = self.sweep_once()
            if any(removed.values()):
                logger.debug("store_sweep", extra={"removed": removed})

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="store-sweeper")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
