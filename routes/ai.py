from __future__ import annotations

import asyncio
import inspect
import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple
from uuid import uuid4

from fastapi import APIRouter, Depends, Request
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    InternalServerError,
    RateLimitError,
)

from ai.prompts import build_chat_messages
from core.errors import error_response
from services.access import check_feature_access
from services.settings import SettingsService

from .common import get_auth, get_settings_service
from schemas.ai import ChatRequest

router = APIRouter()
logger = logging.getLogger("lumina-api")

AI_UNAVAILABLE = "AI service temporarily unavailable."
AI_QUOTA = "AI usage limit reached. Please try again shortly."
AI_TIMEOUT = "AI request timed out. Please try again."
AI_INTERNAL = "Internal error while processing the AI request."
PLAN_REQUIRED = "AI chat is available on the Pro and Premium plans."
MEMORY_DISABLED = (
    "Memory is currently disabled in your settings. "
    "You can re-enable it in your profile to get contextual responses."
)


@dataclass(frozen=True)
class CompletionOptions:
    model: str
    timeout_s: float
    attempts: int
    base_backoff_s: float
    max_tokens: int
    temperature: float = 0.7


def _completion_options(plan: str) -> CompletionOptions:
    # read per call so deployments and tests can change them without a restart
    tokens_var, tokens_default = (
        ("OPENAI_MAX_TOKENS_PREMIUM", "1100") if plan == "premium" else ("OPENAI_MAX_TOKENS", "600")
    )
    return CompletionOptions(
        model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        timeout_s=float(os.getenv("OPENAI_TIMEOUT_S", "35")),
        attempts=max(1, int(os.getenv("OPENAI_MAX_RETRIES", "3"))),
        base_backoff_s=float(os.getenv("OPENAI_RETRY_BASE_BACKOFF_S", "0.5")),
        max_tokens=int(os.getenv(tokens_var, tokens_default)),
    )


def initialize_openai_client(app) -> None:
    api_key = os.getenv("OPENAI_API_KEY")
    app.state.openai_client = None
    if api_key:
        # retries are handled here, not by the SDK
        app.state.openai_client = AsyncOpenAI(
            api_key=api_key,
            timeout=float(os.getenv("OPENAI_TIMEOUT_S", "35")),
            max_retries=0,
        )


async def shutdown_openai_client(app) -> None:
    openai_client = getattr(app.state, "openai_client", None)
    app.state.openai_client = None
    if openai_client is not None:
        closing = openai_client.close()
        if inspect.isawaitable(closing):
            await closing


def _is_transient(exc: Exception) -> bool:
    return isinstance(
        exc,
        (asyncio.TimeoutError, APITimeoutError, APIConnectionError, RateLimitError, InternalServerError),
    )


async def _complete(openai_client, messages: list[dict], options: CompletionOptions):
    """Chat completion with exponential backoff on transient provider errors."""
    for attempt in range(1, options.attempts + 1):
        try:
            return await asyncio.wait_for(
                openai_client.chat.completions.create(
                    model=options.model,
                    messages=messages,
                    max_tokens=options.max_tokens,
                    temperature=options.temperature,
                ),
                timeout=options.timeout_s,
            )
        except Exception as exc:
            if not _is_transient(exc) or attempt == options.attempts:
                raise
            logger.warning(
                "chat_transient_error",
                extra={"attempt": attempt, "max_retries": options.attempts, "error": type(exc).__name__},
            )
        await asyncio.sleep(options.base_backoff_s * (2 ** (attempt - 1)))


def _map_provider_error(exc: Exception) -> Tuple[int, str, str]:
    """Status, client message and log event for a failed completion."""
    if isinstance(exc, AuthenticationError):
        return 503, AI_UNAVAILABLE, "chat_auth_error"
    if isinstance(exc, RateLimitError):
        return 429, AI_QUOTA, "chat_quota_error"
    if isinstance(exc, (APITimeoutError, asyncio.TimeoutError)):
        return 504, AI_TIMEOUT, "chat_timeout"
    if isinstance(exc, (APIConnectionError, APIStatusError)):
        return 502, AI_UNAVAILABLE, "chat_external_api_error"
    return 500, AI_INTERNAL, "chat_unhandled_error"


@router.post("/api/chat")
async def chat(
    body: ChatRequest,
    request: Request,
    auth=Depends(get_auth),
    settings_service: SettingsService = Depends(get_settings_service),
):
    request_id: Optional[str] = getattr(request.state, "request_id", None) or str(uuid4())
    plan = auth["plan"]

    user_settings = await settings_service.load(auth["user_id"])
    if not check_feature_access(plan, user_settings, "ai_chat", raise_if_denied=False):
        return error_response(403, PLAN_REQUIRED, request_id=request_id)
    if not check_feature_access(plan, user_settings, "ai_memory", raise_if_denied=False):
        return error_response(403, MEMORY_DISABLED, request_id=request_id)

    openai_client = getattr(request.app.state, "openai_client", None)
    if openai_client is None:
        logger.error("chat_not_configured", extra={"request_id": request_id})
        return error_response(503, AI_UNAVAILABLE, request_id=request_id, retryable=True)

    messages = build_chat_messages(body.prompt, body.context)
    try:
        completion = await _complete(openai_client, messages, _completion_options(plan))
    except Exception as exc:
        status_code, message, event = _map_provider_error(exc)
        # provider messages may carry account details; only the mapped message goes out
        logger.exception(event, extra={"request_id": request_id, "status": status_code})
        return error_response(status_code, message, request_id=request_id, retryable=True)

    return {
        "ok": True,
        "data": {
            "response": completion.choices[0].message.content,
            "session_id": body.session_id,
            "context_entries": len(body.context),
        },
        "usage": completion.usage.model_dump() if completion.usage is not None else None,
    }
