from __future__ import annotations

import logging
from typing import Mapping, Protocol

from core.cache import TTLCache
from schemas.settings import SETTING_FLAGS, UserSettings

logger = logging.getLogger("lumina-api")


class SettingsRepository(Protocol):
    async def find(self, user_id: str) -> UserSettings | None: ...

    async def create(self, user_id: str, **flags: bool) -> UserSettings: ...

    async def upsert(self, user_id: str, updates: Mapping[str, bool]) -> UserSettings: ...


class SettingsService:
    """Loads per-user settings through the TTL cache.

    Reads populate the cache on miss (creating default settings when the user
    has none yet). Writes go to the repository first and then invalidate the
    cached copy, so the next read reloads the stored row.
    """

    def __init__(self, repository: SettingsRepository, cache: TTLCache[UserSettings]):
        self._repository = repository
        self._cache = cache

    async def load(self, user_id: str, force_refresh: bool = False) -> UserSettings:
        if not force_refresh:
            cached = self._cache.get(user_id)
            if cached is not None:
                return cached

        logger.debug("settings_cache_miss", extra={"user_id": user_id})
        settings = await self._repository.find(user_id)
        if settings is None:
            settings = await self._repository.create(user_id)

        self._cache.set(user_id, settings)
        return settings

    async def update(self, user_id: str, updates: Mapping[str, bool]) -> UserSettings:
        unknown = set(updates) - set(SETTING_FLAGS)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        settings = await self._repository.upsert(user_id, updates)
        self._cache.invalidate(user_id)
        return settings

    async def is_enabled(self, user_id: str, flag: str) -> bool:
        if flag not in SETTING_FLAGS:
            raise ValueError(f"Unknown setting: {flag}")
        settings = await self.load(user_id)
        return bool(getattr(settings, flag))

    def clear(self, user_id: str) -> None:
        self._cache.invalidate(user_id)

    def clear_all(self) -> None:
        self._cache.invalidate_all()
