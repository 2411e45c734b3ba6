import logging
import os

from fastapi import Header, HTTPException, Request

from core.errors import RateLimitExceeded
from core.limits import RateLimitDecision, RateLimiter, client_ip, user_key
from core.plans import resolve_plan

logger = logging.getLogger("lumina-api")


def require_api_key_and_user(
    request: Request,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    api_key = os.getenv("API_KEY")
    if not api_key:
        raise HTTPException(status_code=500, detail="API_KEY is not configured on the server.")

    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid Authorization header. Use Bearer <API_KEY>.")

    token = authorization.split(" ", 1)[1].strip()
    if token != api_key:
        raise HTTPException(status_code=401, detail="Invalid API key.")

    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header.")
    user_id = x_user_id.strip()

    limiter: RateLimiter = request.app.state.rate_limiter
    decision = limiter.check(user_key(user_id), scope="user")
    if not decision.allowed:
        logger.warning(
            "rate_limited",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "path": request.url.path,
                "user_id": user_id,
                "retry_after": decision.retry_after_seconds,
            },
        )
        raise RateLimitExceeded(decision)

    return {"user_id": user_id, "plan": resolve_plan(user_id)}


def route_throttle(request: Request) -> RateLimitDecision:
    """Per-IP budget for the requested route, spent before routing."""
    limiter: RateLimiter = request.app.state.rate_limiter
    trust_forwarded = request.app.state.settings.trust_proxy_headers
    return limiter.check_route(client_ip(request, trust_forwarded), request.url.path)
