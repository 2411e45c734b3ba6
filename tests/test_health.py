from fastapi.testclient import TestClient

import main
from core.config import load_settings


def test_health_ok():
    client = TestClient(main.app)
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_root_reports_service_and_version():
    app = main.create_app(load_settings({"APP_VERSION": "2.3.4"}))
    client = TestClient(app)

    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "service": "lumina-journal-api", "version": "2.3.4"}


def test_api_health_reports_store_state():
    app = main.create_app(load_settings({"STORE_SWEEP_INTERVAL_S": "15"}))

    with TestClient(app) as client:
        resp = client.get("/api/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    services = body["services"]
    assert services["sweeper"]["running"] is True
    assert services["sweeper"]["interval_seconds"] == 15
    assert services["settings_cache"]["keys"] == 0
    # the health request itself opens a window for the caller's IP
    assert services["rate_limiter"]["keys"] == 1


def test_sweeper_stops_with_app():
    app = main.create_app(load_settings({}))

    with TestClient(app):
        assert app.state.sweeper.running is True

    assert app.state.sweeper.running is False


def test_version_endpoint():
    env = {"APP_VERSION": "1.2.0", "BUILD_ID": "b-77", "APP_ENV": "staging", "GIT_COMMIT": "abc123", "GIT_BRANCH": "main"}
    client = TestClient(main.create_app(load_settings(env)))

    resp = client.get("/api/version")

    assert resp.status_code == 200
    assert resp.json()["data"] == {
        "version": "1.2.0",
        "buildId": "b-77",
        "environment": "staging",
        "gitCommit": "abc123",
        "gitBranch": "main",
    }


def test_responses_echo_request_id():
    client = TestClient(main.app)

    resp = client.get("/health", headers={"X-Request-Id": "trace-1"})

    assert resp.headers["X-Request-Id"] == "trace-1"


def test_unknown_route_uses_error_envelope():
    client = TestClient(main.app)

    resp = client.get("/api/does-not-exist")

    assert resp.status_code == 404
    body = resp.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "LUMINA-404"
