from __future__ import annotations
from typing import Optional
from fastapi import Header, Request
from core.limits import RateLimiter
from core.security import require_api_key_and_user
from services.settings import SettingsService

def get_auth(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
):
    """Authenticates via API key + user id and spends one unit of the user's budget."""
    return require_api_key_and_user(
        request=request,
        authorization=authorization,
        x_user_id=x_user_id,
    )

def get_settings_service(request: Request) -> SettingsService:
    return request.app.state.settings_service

def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter
