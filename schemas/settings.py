from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SETTING_FLAGS = ("ai_memory_enabled", "mood_analysis_enabled", "summary_generation_enabled")


class UserSettings(BaseModel):
    """Per-user AI feature flags, serialized in camelCase."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    user_id: str
    ai_memory_enabled: bool = True
    mood_analysis_enabled: bool = True
    summary_generation_enabled: bool = True
    created_at: datetime
    updated_at: datetime


class SettingsUpdateRequest(BaseModel):
    """Partial update; omitted flags keep their stored value.

    The read-only fields of a GET response are accepted and ignored, so a
    client can send back the object it read.
    """

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    ai_memory_enabled: Optional[bool] = None
    mood_analysis_enabled: Optional[bool] = None
    summary_generation_enabled: Optional[bool] = None

    user_id: Optional[str] = Field(default=None, exclude=True)
    created_at: Optional[datetime] = Field(default=None, exclude=True)
    updated_at: Optional[datetime] = Field(default=None, exclude=True)

    def changes(self) -> dict[str, bool]:
        return self.model_dump(include=set(SETTING_FLAGS), exclude_none=True)


class SettingsResponse(BaseModel):
    ok: bool = True
    data: UserSettings
