import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.cache import TTLCache
from core.config import AppSettings, load_settings
from core.errors import RateLimitExceeded, error_response, rate_limited_response
from core.expiring import PeriodicSweeper
from core.limits import RateLimiter, rate_limit_headers
from core.logs import configure_logging
from core.security import route_throttle
from routes import ai as ai_routes
from routes import settings as settings_routes
from routes import system as system_routes
from services.settings import SettingsService
from services.settings_repository import InMemorySettingsRepository

# -----------------------------
# Load env
# -----------------------------
load_dotenv()

logger = logging.getLogger("lumina-api")

EXPOSED_HEADERS = (
    "Retry-After",
    "X-RateLimit-Limit",
    "X-RateLimit-Remaining",
    "X-RateLimit-Reset",
    "X-Request-Id",
)


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    repository=None,
    time_func: Callable[[], float] = time.time,
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    rate_limiter = RateLimiter(settings.rate_limit_policy(), time_func=time_func)
    settings_cache = TTLCache(default_ttl_seconds=settings.settings_cache_ttl_s, time_func=time_func)
    settings_service = SettingsService(repository or InMemorySettingsRepository(), settings_cache)
    sweeper = PeriodicSweeper(
        {"rate_limiter": rate_limiter, "settings_cache": settings_cache},
        interval_seconds=settings.store_sweep_interval_s,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ai_routes.initialize_openai_client(app)
        sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()
            await ai_routes.shutdown_openai_client(app)

    app = FastAPI(
        title="Lumina Journal API",
        description="Journaling API with per-user settings and an AI reflection assistant",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.rate_limiter = rate_limiter
    app.state.settings_cache = settings_cache
    app.state.settings_service = settings_service
    app.state.sweeper = sweeper
    app.state.openai_client = None

    # -----------------------------
    # Middleware: per-IP route throttle
    # -----------------------------
    @app.middleware("http")
    async def route_throttle_middleware(request: Request, call_next):
        path = request.url.path
        if not path.startswith("/api/") or request.method == "OPTIONS":
            return await call_next(request)

        decision = route_throttle(request)
        if not decision.allowed:
            request_id = getattr(request.state, "request_id", None)
            logger.warning(
                "rate_limited",
                extra={"request_id": request_id, "path": path, "retry_after": decision.retry_after_seconds},
            )
            return rate_limited_response(decision, request_id=request_id)

        response = await call_next(request)
        for name, value in rate_limit_headers(decision).items():
            response.headers.setdefault(name, value)
        return response

    # -----------------------------
    # Middleware: request_id + logging
    # -----------------------------
    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        start = time.time()

        # attach to request state
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception:
            latency_ms = int((time.time() - start) * 1000)
            logger.error(
                "unhandled_exception",
                exc_info=True,
                extra={"request_id": request_id, "path": request.url.path, "status": 500, "latency_ms": latency_ms},
            )
            return error_response(500, "Internal server error.", request_id=request_id)

        latency_ms = int((time.time() - start) * 1000)
        # don't log secrets; only safe fields
        logger.info(
            "request",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "status": response.status_code,
                "latency_ms": latency_ms,
            },
        )
        response.headers["X-Request-Id"] = request_id
        return response

    # -----------------------------
    # CORS (registered last so it wraps the throttle and its 429s)
    # -----------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],  # Authorization + X-User-Id
        expose_headers=list(EXPOSED_HEADERS),
    )

    # -----------------------------
    # Exception handlers
    # -----------------------------
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        request_id = getattr(request.state, "request_id", None)
        if isinstance(exc, RateLimitExceeded):
            return rate_limited_response(exc.decision, request_id=request_id)

        logger.warning(
            "http_exception",
            extra={"request_id": request_id, "path": request.url.path, "status": exc.status_code},
        )
        return error_response(
            exc.status_code,
            str(exc.detail),
            request_id=request_id,
            retryable=exc.status_code >= 500,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        request_id = getattr(request.state, "request_id", None)
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid request for {request.url.path}"
        if location:
            message += f": {location} {first.get('msg', '')}".rstrip()
        return error_response(422, message, request_id=request_id)

    # -----------------------------
    # Routes
    # -----------------------------
    app.include_router(system_routes.router)
    app.include_router(settings_routes.router)
    app.include_router(ai_routes.router)

    return app


app = create_app()
