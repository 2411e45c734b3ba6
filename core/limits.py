"""Fixed-window request limiter.

Counters are process-local: each replica counts on its own and everything is
lost on restart. Running more than one process needs a shared store with
atomic increment + expire (e.g. Redis INCR/EXPIRE) behind the same ``check``.

Fixed windows allow bursts at the boundary. A client can spend its full
budget at the end of one window and again at the start of the next, so up to
``2 * limit`` requests may pass within one window length.
"""

from __future__ import annotations

import math
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping, Optional

from fastapi import Request

from core.expiring import ExpiringMap

DEFAULT_WINDOW_SECONDS = 60
DEFAULT_LIMIT = 120

# per-route limits (requests per window), overridable via RATE_LIMIT_ROUTE_LIMITS
DEFAULT_ROUTE_LIMITS: Dict[str, int] = {
    "/api/chat": 20,
    "/api/search": 50,
    "/api/insights": 30,
    "/api/export": 10,
    "/api/journal": 60,
    "/api/voice/upload-url": 30,
}


@dataclass(frozen=True)
class RateWindow:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int = 0


@dataclass(frozen=True)
class RateLimitPolicy:
    window_seconds: float = DEFAULT_WINDOW_SECONDS
    default_limit: int = DEFAULT_LIMIT
    route_limits: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_ROUTE_LIMITS))

    def limit_for(self, route: Optional[str]) -> int:
        if route is None:
            return self.default_limit
        return self.route_limits.get(route, self.default_limit)

    def to_dict(self) -> dict:
        return {
            "window_seconds": self.window_seconds,
            "default_limit": self.default_limit,
            "route_limits": dict(self.route_limits),
        }


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def route_key(identity: str, route: str) -> str:
    return f"{identity}:{route}"


def client_ip(request: Request, trust_forwarded: bool = True) -> str:
    """Caller address used for per-IP budgets.

    With ``trust_forwarded`` the first ``X-Forwarded-For`` hop (then
    ``X-Real-IP``) wins. Those headers are client-controlled unless a proxy in
    front of the app overwrites them, so only enable it behind such a proxy;
    otherwise a caller can rotate the header to get a fresh window per request.
    """
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_headers(decision: RateLimitDecision) -> Dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": datetime.fromtimestamp(decision.reset_at, tz=timezone.utc).isoformat(),
    }
    if not decision.allowed:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


class RateLimiter:
    def __init__(
        self,
        policy: Optional[RateLimitPolicy] = None,
        time_func: Callable[[], float] = time.time,
    ):
        self.policy = policy or RateLimitPolicy()
        self._windows: ExpiringMap[RateWindow] = ExpiringMap(time_func=time_func)
        self._metrics_lock = threading.Lock()
        self._allowed = 0
        self._blocked = 0
        self._blocked_by_scope: Dict[str, int] = defaultdict(int)

    def check(self, key: str, limit: Optional[int] = None, *, scope: str = "default") -> RateLimitDecision:
        max_requests = self.policy.default_limit if limit is None else limit
        window_seconds = self.policy.window_seconds

        def _advance(item, now):
            if item is None or now >= item[0]:
                current = RateWindow(count=1, reset_at=now + window_seconds)
            else:
                current = replace(item[1], count=item[1].count + 1)
            return (current.reset_at, current), (current, now)

        current, now = self._windows.update(key, _advance)

        if current.count > max_requests:
            retry_after = math.ceil(current.reset_at - now)
            retry_after = min(max(retry_after, 0), math.ceil(window_seconds))
            decision = RateLimitDecision(
                allowed=False,
                limit=max_requests,
                remaining=0,
                reset_at=current.reset_at,
                retry_after_seconds=retry_after,
            )
        else:
            decision = RateLimitDecision(
                allowed=True,
                limit=max_requests,
                remaining=max_requests - current.count,
                reset_at=current.reset_at,
            )

        self._record(decision, scope)
        return decision

    def check_route(self, identity: str, route: str) -> RateLimitDecision:
        return self.check(route_key(identity, route), self.policy.limit_for(route), scope=route)

    def peek(self, key: str) -> Optional[RateWindow]:
        item = self._windows.get_entry(key)
        return None if item is None else item[1]

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key)

    def sweep(self) -> int:
        return self._windows.sweep()

    def __len__(self) -> int:
        return len(self._windows)

    def _record(self, decision: RateLimitDecision, scope: str) -> None:
        with self._metrics_lock:
            if decision.allowed:
                self._allowed += 1
            else:
                self._blocked += 1
                self._blocked_by_scope[scope] += 1

    def metrics(self) -> dict:
        with self._metrics_lock:
            return {
                "allowed": self._allowed,
                "blocked": self._blocked,
                "blocked_by_scope": dict(self._blocked_by_scope),
            }

    def reset_metrics(self) -> None:
        with self._metrics_lock:
            self._allowed = 0
            self._blocked = 0
            self._blocked_by_scope.clear()
