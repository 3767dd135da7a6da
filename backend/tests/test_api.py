from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from codeforge.core.config import settings
from codeforge.main import app, run
from codeforge.services.platforms import CodeforcesStats, PlatformRateLimited, PlatformUserNotFound

SECRET = "owner-secret"


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "OWNER_SECRET_KEY", SECRET)
    with TestClient(app) as c:
        yield c


def admin_headers():
    return {"X-Secret-Key": SECRET}


def test_health_reports_rate_limiting(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["rateLimiting"]["totalUsers"] == 0
    assert body["rateLimiting"]["limits"]["roomJoins"]["maxRequests"] == 10


def test_admin_routes_require_secret_key(client):
    assert client.get("/api/v1/rate-limits/stats").status_code == 401
    wrong = client.get("/api/v1/rate-limits/stats", headers={"X-Secret-Key": "nope"})
    assert wrong.status_code == 403
    assert client.get(f"/api/v1/rate-limits/stats?secretKey={SECRET}").status_code == 200


def test_admin_routes_unconfigured_key(client, monkeypatch):
    monkeypatch.setattr(settings, "OWNER_SECRET_KEY", "")

    resp = client.get("/api/v1/rate-limits/stats", headers=admin_headers())

    assert resp.status_code == 500


def test_check_status_and_reset(client):
    for _ in range(10):
        resp = client.post("/api/v1/rate-limits/u1/roomJoins/check", headers=admin_headers())
        assert resp.json() == {"allowed": True}

    blocked = client.post("/api/v1/rate-limits/u1/roomJoins/check", headers=admin_headers())
    assert blocked.status_code == 200
    assert blocked.json()["allowed"] is False
    assert blocked.json()["retryAfter"] == 60

    status = client.get("/api/v1/rate-limits/u1/roomJoins", headers=admin_headers()).json()
    assert status["count"] == 10
    assert status["blocked"] is True

    stats = client.get("/api/v1/rate-limits/stats", headers=admin_headers()).json()
    assert stats["blockedUsers"] == 1

    reset = client.delete("/api/v1/rate-limits/u1?action=roomJoins", headers=admin_headers())
    assert reset.json() == {"reset": True, "userId": "u1", "action": "roomJoins"}
    assert client.delete("/api/v1/rate-limits/u1", headers=admin_headers()).status_code == 404


def test_invalid_action_check(client):
    resp = client.post("/api/v1/rate-limits/u1/uploads/check", headers=admin_headers())

    assert resp.json() == {"allowed": False, "reason": "Invalid parameters"}


def _fake_client(monkeypatch, **methods):
    fake = Mock(platform="codeforces", **methods)
    monkeypatch.setattr(
        "codeforge.api.routes.platforms.get_platform_client", lambda name: fake
    )
    return fake


def test_platform_stats(client, monkeypatch):
    stats = CodeforcesStats("tourist", 3800, 4000, "lgm", "lgm", 100, 5000)
    _fake_client(monkeypatch, fetch_stats=AsyncMock(return_value=stats))

    resp = client.get("/api/v1/platforms/codeforces/tourist")

    assert resp.status_code == 200
    assert resp.json()["platform"] == "codeforces"
    assert resp.json()["current_rating"] == 3800


def test_platform_errors_mapped(client, monkeypatch):
    _fake_client(
        monkeypatch, fetch_stats=AsyncMock(side_effect=PlatformUserNotFound("codeforces", "x"))
    )
    assert client.get("/api/v1/platforms/codeforces/x").status_code == 404

    _fake_client(
        monkeypatch,
        validate_username=AsyncMock(side_effect=PlatformRateLimited("codeforces", retry_after=30)),
    )
    resp = client.get("/api/v1/platforms/codeforces/x/validate")
    assert resp.status_code == 429
    assert resp.headers["retry-after"] == "30"


def test_unknown_platform(client):
    assert client.get("/api/v1/platforms/hackerrank/alice").status_code == 404


def test_room_chat_websocket(client):
    with client.websocket_connect("/ws/rooms?userId=alice") as ws:
        ws.send_json({"event": "join_room", "data": {"roomId": "r1"}})
        assert ws.receive_json() == {"event": "room_joined", "roomId": "r1"}

        ws.send_json({"event": "send_message", "data": {"roomId": "r1", "message": {"content": "hello"}}})
        broadcast = ws.receive_json()
        assert broadcast["event"] == "receive_message"
        assert broadcast["message"]["content"] == "hello"
        assert ws.receive_json()["event"] == "message_sent"

        ws.send_text("not json")
        assert ws.receive_json() == {"event": "error", "error": "Invalid frame"}


def test_run_serves_app_with_uvicorn(monkeypatch):
    monkeypatch.setattr(settings, "HOST", "127.0.0.1")
    monkeypatch.setattr(settings, "PORT", 9001)

    with patch("uvicorn.run") as serve:
        run()

    serve.assert_called_once_with(app, host="127.0.0.1", port=9001, log_level="info")
