from __future__ import annotations
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request
from core.limits import RateLimiter
from .common import get_auth, get_rate_limiter

router = APIRouter()

@router.get("/")
async def root(request: Request):
    """Root endpoint for uptime checks."""
    settings = request.app.state.settings
    return {
        "ok": True,
        "service": "lumina-journal-api",
        "version": settings.app_version,
    }

@router.get("/health")
async def health_check():
    """Simple liveness probe."""
    return {"ok": True}

@router.get("/api/health")
async def api_health(request: Request):
    """Readiness probe with in-process store state."""
    state = request.app.state
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "rate_limiter": {"keys": len(state.rate_limiter)},
            "settings_cache": {"keys": len(state.settings_cache)},
            "sweeper": {
                "running": state.sweeper.running,
                "interval_seconds": state.sweeper.interval_seconds,
            },
            "openai": getattr(state, "openai_client", None) is not None,
        },
    }

@router.get("/api/version")
async def version(request: Request):
    settings = request.app.state.settings
    return {
        "ok": True,
        "data": {
            "version": settings.app_version,
            "buildId": settings.build_id,
            "environment": settings.app_env,
            "gitCommit": settings.git_commit,
            "gitBranch": settings.git_branch,
        },
    }

@router.get("/api/system/limits")
async def limits(
    request: Request,
    auth=Depends(get_auth),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Current throttling policy and counters for this process."""
    return {
        "ok": True,
        "data": {
            "policy": limiter.policy.to_dict(),
            "metrics": limiter.metrics(),
            "settings_cache_ttl_seconds": request.app.state.settings_cache.default_ttl_seconds,
        },
    }
