import json

from core.errors import (
    RATE_LIMIT_MESSAGE,
    RateLimitExceeded,
    build_error,
    error_response,
    rate_limited_response,
)
from core.limits import RateLimitDecision


def _denied(retry_after: int = 12) -> RateLimitDecision:
    return RateLimitDecision(allowed=False, limit=5, remaining=0, reset_at=1_700_000_060.0, retry_after_seconds=retry_after)


def test_build_error_maps_known_status_codes():
    err = build_error(404, "Not found")

    assert err.error_code == "LUMINA-404"
    assert err.error_id.startswith("err_")
    assert err.to_response() == {
        "id": err.error_id,
        "code": "LUMINA-404",
        "message": "Not found",
        "retryable": False,
    }


def test_build_error_falls_back_for_unknown_status():
    assert build_error(418, "teapot").error_code == "LUMINA-500"


def test_error_response_sets_request_id_header():
    resp = error_response(401, "Unauthorized", request_id="req-1", headers={"WWW-Authenticate": "Bearer"})

    body = json.loads(resp.body)
    assert resp.status_code == 401
    assert resp.headers["X-Request-Id"] == "req-1"
    assert resp.headers["WWW-Authenticate"] == "Bearer"
    assert body["detail"] == "Unauthorized"
    assert body["request_id"] == "req-1"


def test_rate_limited_response_carries_retry_hint():
    resp = rate_limited_response(_denied(12), request_id="req-2")

    body = json.loads(resp.body)
    assert resp.status_code == 429
    assert body["retryAfter"] == 12
    assert body["error"]["retryable"] is True
    assert body["error"]["message"] == RATE_LIMIT_MESSAGE
    assert resp.headers["Retry-After"] == "12"
    assert resp.headers["X-RateLimit-Limit"] == "5"
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert resp.headers["X-RateLimit-Reset"].startswith("2023-11-14T22:14:20")


def test_rate_limit_exceeded_keeps_decision():
    decision = _denied(3)

    exc = RateLimitExceeded(decision)

    assert exc.status_code == 429
    assert exc.decision is decision
    assert exc.headers["Retry-After"] == "3"
