from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

MAX_PROMPT_LENGTH = 1_000
MAX_CONTEXT_ENTRIES = 10
MAX_ENTRY_CONTENT_LENGTH = 4_000
MAX_TAGS_PER_ENTRY = 20
MAX_TAG_LENGTH = 40


class ChatContextEntry(BaseModel):
    """Excerpt of a past journal entry supplied as chat context."""

    entry_id: Optional[str] = Field(default=None, max_length=64)
    content: str = Field(..., min_length=1, max_length=MAX_ENTRY_CONTENT_LENGTH)
    summary: Optional[str] = Field(default=None, max_length=1_000)
    tags: List[str] = Field(default_factory=list, max_length=MAX_TAGS_PER_ENTRY)
    mood: Optional[str] = Field(default=None, max_length=40)
    created_at: Optional[datetime] = None

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, value: List[str]) -> List[str]:
        cleaned = [t.strip() for t in value if isinstance(t, str) and t.strip()]
        if any(len(t) > MAX_TAG_LENGTH for t in cleaned):
            raise ValueError("tag is too long")
        return cleaned


class ChatRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=MAX_PROMPT_LENGTH)
    session_id: Optional[str] = Field(default=None, max_length=128)
    context: List[ChatContextEntry] = Field(default_factory=list, max_length=MAX_CONTEXT_ENTRIES)

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt is required")
        return value
