from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from core.limits import RateLimitDecision, rate_limit_headers


HTTP_TO_LUMINA_CODE = {
    400: "LUMINA-400",
    401: "LUMINA-401",
    403: "LUMINA-403",
    404: "LUMINA-404",
    409: "LUMINA-409",
    422: "LUMINA-422",
    429: "LUMINA-429",
    500: "LUMINA-500",
    502: "LUMINA-502",
    503: "LUMINA-503",
    504: "LUMINA-504",
}

RATE_LIMIT_MESSAGE = "Too many requests. Please retry later."


@dataclass(frozen=True)
class ApiError:
    error_id: str
    error_code: str
    message: str
    retryable: bool

    def to_response(self) -> dict:
        return {
            "id": self.error_id,
            "code": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
        }


def build_error(status_code: int, message: str, *, retryable: bool = False) -> ApiError:
    return ApiError(
        error_id=f"err_{uuid4().hex[:12]}",
        error_code=HTTP_TO_LUMINA_CODE.get(status_code, "LUMINA-500"),
        message=message,
        retryable=retryable,
    )


def error_payload(status_code: int, message: str, *, request_id: Optional[str], retryable: bool = False) -> dict:
    err = build_error(status_code, message, retryable=retryable)
    return {
        "ok": False,
        "data": None,
        "error": err.to_response(),
        "detail": message,
        "request_id": request_id,
    }


def error_response(
    status_code: int,
    message: str,
    *,
    request_id: Optional[str],
    retryable: bool = False,
    headers: Optional[dict] = None,
) -> JSONResponse:
    payload = error_payload(status_code, message, request_id=request_id, retryable=retryable)
    merged = dict(headers or {})
    if request_id:
        merged["X-Request-Id"] = request_id
    return JSONResponse(status_code=status_code, content=payload, headers=merged)


def rate_limited_response(decision: RateLimitDecision, *, request_id: Optional[str]) -> JSONResponse:
    payload = error_payload(429, RATE_LIMIT_MESSAGE, request_id=request_id, retryable=True)
    payload["retryAfter"] = decision.retry_after_seconds
    headers = rate_limit_headers(decision)
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(status_code=429, content=payload, headers=headers)


class RateLimitExceeded(HTTPException):
    """Raised from dependencies; rendered as 429 with the retry hint."""

    def __init__(self, decision: RateLimitDecision):
        super().__init__(status_code=429, detail=RATE_LIMIT_MESSAGE, headers=rate_limit_headers(decision))
        self.decision = decision
