import pytest
from fastapi.testclient import TestClient

import main
from core.config import load_settings


@pytest.fixture(autouse=True)
def _set_env(monkeypatch):
    monkeypatch.setenv("API_KEY", "test-key")
    yield


@pytest.fixture
def app():
    return main.create_app(load_settings({}))


@pytest.fixture
def client(app):
    return TestClient(app)


def _auth_headers(user_id: str = "u1"):
    return {"Authorization": "Bearer test-key", "X-User-Id": user_id}


def test_get_settings_creates_defaults(client):
    resp = client.get("/api/settings", headers=_auth_headers())

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["data"]["userId"] == "u1"
    assert body["data"]["aiMemoryEnabled"] is True
    assert body["data"]["moodAnalysisEnabled"] is True
    assert body["data"]["summaryGenerationEnabled"] is True


def test_get_settings_populates_cache(app, client):
    client.get("/api/settings", headers=_auth_headers())

    cached = app.state.settings_cache.get("u1")
    assert cached is not None
    assert cached.user_id == "u1"


def test_put_settings_updates_and_invalidates_cache(app, client):
    client.get("/api/settings", headers=_auth_headers())

    resp = client.put("/api/settings", headers=_auth_headers(), json={"ai_memory_enabled": False})

    assert resp.status_code == 200
    assert resp.json()["data"]["aiMemoryEnabled"] is False
    assert resp.json()["data"]["moodAnalysisEnabled"] is True
    assert app.state.settings_cache.get("u1") is None

    follow_up = client.get("/api/settings", headers=_auth_headers())
    assert follow_up.json()["data"]["aiMemoryEnabled"] is False


def test_put_settings_accepts_camel_case_fields(client):
    resp = client.put("/api/settings", headers=_auth_headers(), json={"summaryGenerationEnabled": False})

    assert resp.status_code == 200
    assert resp.json()["data"]["summaryGenerationEnabled"] is False


def test_get_response_can_be_sent_back_unchanged(client):
    current = client.get("/api/settings", headers=_auth_headers()).json()["data"]

    resp = client.put("/api/settings", headers=_auth_headers(), json={**current, "aiMemoryEnabled": False})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["aiMemoryEnabled"] is False
    assert data["userId"] == "u1"
    assert data["createdAt"] == current["createdAt"]


def test_put_cannot_change_owner(client):
    client.put("/api/settings", headers=_auth_headers("u1"), json={"userId": "u2", "moodAnalysisEnabled": False})

    other = client.get("/api/settings", headers=_auth_headers("u2")).json()["data"]

    assert other["moodAnalysisEnabled"] is True


def test_put_settings_rejects_unknown_fields(client):
    resp = client.put("/api/settings", headers=_auth_headers(), json={"dark_mode": True})

    assert resp.status_code == 422
    body = resp.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "LUMINA-422"
    assert body["error"]["id"].startswith("err_")


def test_settings_are_isolated_per_user(client):
    client.put("/api/settings", headers=_auth_headers("user-1"), json={"mood_analysis_enabled": False})

    other = client.get("/api/settings", headers=_auth_headers("user-2"))

    assert other.json()["data"]["moodAnalysisEnabled"] is True


def test_missing_authorization_is_rejected(client):
    resp = client.get("/api/settings", headers={"X-User-Id": "u1"})

    assert resp.status_code == 401
    body = resp.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "LUMINA-401"
    assert body["request_id"]


def test_wrong_api_key_is_rejected(client):
    resp = client.get("/api/settings", headers={"Authorization": "Bearer nope", "X-User-Id": "u1"})

    assert resp.status_code == 401


def test_missing_user_id_is_rejected(client):
    resp = client.get("/api/settings", headers={"Authorization": "Bearer test-key"})

    assert resp.status_code == 401


def test_unconfigured_api_key_is_server_error(monkeypatch, client):
    monkeypatch.delenv("API_KEY", raising=False)

    resp = client.get("/api/settings", headers=_auth_headers())

    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "LUMINA-500"
