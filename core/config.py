from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, Mapping, Optional, Tuple

from pydantic import PositiveFloat, PositiveInt, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from core.limits import DEFAULT_LIMIT, DEFAULT_ROUTE_LIMITS, RateLimitPolicy

logger = logging.getLogger("lumina-api")

DEFAULT_WINDOW_MS = 60_000
DEFAULT_SETTINGS_CACHE_TTL_S = 300.0
DEFAULT_SWEEP_INTERVAL_S = 60.0


def parse_route_limits(raw: Optional[str]) -> Dict[str, int]:
    """Parse ``"/api/chat=20,/api/export=10"`` into a route table.

    Malformed items are skipped with a warning.
    """
    limits: Dict[str, int] = {}
    if not raw:
        return limits

    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        route, sep, value = item.rpartition("=")
        route = route.strip()
        try:
            max_requests = int(value)
        except ValueError:
            max_requests = 0
        if not sep or not route or max_requests <= 0:
            logger.warning("invalid_route_limit", extra={"item": item})
            continue
        limits[route] = max_requests
    return limits


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", frozen=True)

    # Rate limiting
    rate_limit_window_ms: PositiveInt = DEFAULT_WINDOW_MS
    rate_limit_default_max: PositiveInt = DEFAULT_LIMIT
    rate_limit_route_limits: Annotated[Dict[str, int], NoDecode] = dict(DEFAULT_ROUTE_LIMITS)
    trust_proxy_headers: bool = True  # honour X-Forwarded-For / X-Real-IP for the per-IP budget

    # Stores
    settings_cache_ttl_s: PositiveFloat = DEFAULT_SETTINGS_CACHE_TTL_S
    store_sweep_interval_s: PositiveFloat = DEFAULT_SWEEP_INTERVAL_S

    # HTTP
    log_level: str = "INFO"
    allowed_origins: Annotated[Tuple[str, ...], NoDecode] = ("*",)

    # Build info
    app_env: str = "development"
    app_version: str = "1.0.0"
    build_id: str = "development"
    git_commit: str = "unknown"
    git_branch: str = "unknown"

    @field_validator(
        "rate_limit_window_ms",
        "rate_limit_default_max",
        "settings_cache_ttl_s",
        "store_sweep_interval_s",
        mode="wrap",
    )
    @classmethod
    def fallback_to_default(cls, value: Any, handler, info: ValidationInfo):
        try:
            return handler(value)
        except ValidationError:
            logger.warning("invalid_config_value", extra={"setting": info.field_name, "value": value})
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)

    @field_validator("rate_limit_route_limits", mode="before")
    @classmethod
    def merge_route_limits(cls, value: Any) -> Any:
        # env overrides extend the built-in table
        if isinstance(value, str):
            return {**DEFAULT_ROUTE_LIMITS, **parse_route_limits(value)}
        return value

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            if value.strip() == "*":
                return ("*",)
            return tuple(o.strip() for o in value.split(",") if o.strip())
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    def rate_limit_policy(self) -> RateLimitPolicy:
        return RateLimitPolicy(
            window_seconds=self.rate_limit_window_ms / 1000,
            default_limit=self.rate_limit_default_max,
            route_limits=dict(self.rate_limit_route_limits),
        )


def load_settings(environ: Optional[Mapping[str, str]] = None) -> AppSettings:
    """Settings from the process environment and ``.env``, or only from ``environ`` when given."""
    if environ is None:
        return AppSettings()

    given = {key.lower(): value for key, value in environ.items()}
    values = {
        name: given.get(name, field.get_default(call_default_factory=True))
        for name, field in AppSettings.model_fields.items()
    }
    # every field is passed explicitly, so neither os.environ nor .env leak in
    return AppSettings(_env_file=None, **values)
