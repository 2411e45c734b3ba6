"""In-process stand-in for the settings table.

Exposes the async find/create/upsert contract the ORM-backed repository has,
so the service and routes do not change when persistence is swapped in.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping, Optional

from schemas.settings import SETTING_FLAGS, UserSettings


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemorySettingsRepository:
    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._rows: Dict[str, UserSettings] = {}
        self._lock = threading.Lock()
        self._clock = clock

    async def find(self, user_id: str) -> Optional[UserSettings]:
        with self._lock:
            return self._rows.get(user_id)

    async def create(self, user_id: str, **flags: bool) -> UserSettings:
        now = self._clock()
        with self._lock:
            existing = self._rows.get(user_id)
            if existing is not None:
                return existing
            row = UserSettings(user_id=user_id, created_at=now, updated_at=now, **_only_flags(flags))
            self._rows[user_id] = row
            return row

    async def upsert(self, user_id: str, updates: Mapping[str, bool]) -> UserSettings:
        now = self._clock()
        changes = _only_flags(updates)
        with self._lock:
            existing = self._rows.get(user_id)
            if existing is None:
                row = UserSettings(user_id=user_id, created_at=now, updated_at=now, **changes)
            else:
                row = existing.model_copy(update={**changes, "updated_at": now})
            self._rows[user_id] = row
            return row


def _only_flags(values: Mapping[str, bool]) -> Dict[str, bool]:
    return {k: bool(v) for k, v in values.items() if k in SETTING_FLAGS and v is not None}
