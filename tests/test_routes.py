"""HTTP surface of the guard and the admin security endpoints."""

import json

import security.challenge
from monitoring import SignalSurface
from utils.guard_context import get_monitor


def fail(client, identity, times=1):
    resp = None
    for _ in range(times):
        resp = client.post("/guard/failure", json={"identity": identity})
    return resp


def test_health_and_security_headers(client) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["Cache-Control"] == "no-store"


def test_missing_identity_is_rejected(client) -> None:
    assert client.post("/guard/check", json={}).status_code == 400
    assert client.post("/guard/failure", json={"identity": "   "}).status_code == 400
    assert client.post("/guard/success", json={"identity": 42}).status_code == 400
    assert client.get("/guard/status").status_code == 400


def test_fresh_identity_is_allowed(client) -> None:
    resp = client.post("/guard/check", json={"email": "User@Example.com"})
    assert resp.status_code == 200
    assert resp.get_json() == {"allowed": True, "requires_challenge": False}


def test_failure_reports_remaining_attempts(client) -> None:
    body = fail(client, "user@example.com").get_json()
    assert body["attempt_count"] == 1
    assert body["remaining_attempts"] == 4
    assert body["locked"] is False
    assert body["lockout_seconds"] is None
    assert body["message"] == "Login failed. 4 attempts remaining."


def test_challenge_required_after_three_failures(client, monkeypatch) -> None:
    monkeypatch.setattr(security.challenge, "make_puzzle", lambda difficulty, rng: ("1 + 1 = ?", 2))
    body = fail(client, "user@example.com", 3).get_json()
    assert body["requires_challenge"] is True
    assert body["message"].endswith("Please complete the verification challenge.")

    resp = client.post("/guard/check", json={"identity": "user@example.com"})
    assert resp.status_code == 403
    assert resp.get_json()["requires_challenge"] is True

    issued = client.post("/guard/challenge", json={})
    assert issued.status_code == 201
    challenge = issued.get_json()
    assert challenge["question"] == "1 + 1 = ?"

    resp = client.post("/guard/check", json={
        "identity": "user@example.com",
        "challenge_token": challenge["token"],
        "challenge_answer": "2",
    })
    assert resp.status_code == 200
    assert resp.get_json() == {"allowed": True, "requires_challenge": True}

    # tokens are single use
    resp = client.post("/guard/check", json={
        "identity": "user@example.com",
        "challenge_token": challenge["token"],
        "challenge_answer": "2",
    })
    assert resp.status_code == 403


def test_lockout_after_max_attempts(client, clock) -> None:
    body = fail(client, "user@example.com", 5).get_json()
    assert body["locked"] is True
    assert body["lockout_seconds"] == 300
    assert body["message"] == "Account temporarily locked for 5 minutes. Too many failed login attempts."

    resp = client.post("/guard/check", json={"identity": "user@example.com"})
    assert resp.status_code == 429
    blocked = resp.get_json()
    assert blocked["allowed"] is False
    assert blocked["retry_after_seconds"] == 300
    assert blocked["time_remaining"] == "5 minutes"

    clock.advance(minutes=5)
    status = client.get("/guard/status?identity=user@example.com").get_json()
    assert status["is_blocked"] is False
    assert status["attempt_count"] == 0
    assert status["lockout_level"] == 1


def test_success_clears_state(client) -> None:
    fail(client, "user@example.com", 2)
    resp = client.post("/guard/success", json={"identity": "USER@example.com"})
    assert resp.status_code == 200
    assert resp.get_json() == {"message": "Guard state cleared"}

    status = client.get("/guard/status?identity=user@example.com").get_json()
    assert status["attempt_count"] == 0
    assert status["requires_challenge"] is False
    assert status["time_remaining"] == ""


def test_challenge_endpoints(client, monkeypatch) -> None:
    monkeypatch.setattr(security.challenge, "make_puzzle", lambda difficulty, rng: ("3 * 4 = ?", 12))

    assert client.post("/guard/challenge", json={"difficulty": "impossible"}).status_code == 400

    token = client.post("/guard/challenge", json={"difficulty": "hard"}).get_json()["token"]
    assert client.post("/guard/challenge/verify", json={"token": token}).status_code == 400
    wrong = client.post("/guard/challenge/verify", json={"token": token, "answer": "11"})
    assert wrong.status_code == 400
    assert wrong.get_json()["verified"] is False
    right = client.post("/guard/challenge/verify", json={"token": token, "answer": 12})
    assert right.status_code == 200
    assert right.get_json() == {"verified": True}


def test_admin_endpoints_require_token(client) -> None:
    assert client.get("/security/events").status_code == 403
    assert client.get("/security/events", headers={"X-Admin-Token": "nope"}).status_code == 403
    assert client.delete("/security/events").status_code == 403
    assert client.get("/security/export").status_code == 403


def test_admin_endpoints_disabled_without_configured_token(app, client, admin_headers) -> None:
    app.config["ADMIN_API_TOKEN"] = None
    resp = client.get("/security/events", headers=admin_headers)
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "Admin API disabled"


def test_list_and_clear_login_events(client, admin_headers) -> None:
    fail(client, "a@example.com", 2)
    client.post("/guard/success", json={"identity": "a@example.com"})

    events = client.get("/security/events?log=login", headers=admin_headers).get_json()
    assert [e["type"] for e in events] == ["failed_login_attempt", "failed_login_attempt", "successful_login"]
    assert events[0]["url"].endswith("/guard/failure")

    medium = client.get("/security/events?log=login&severity=medium", headers=admin_headers).get_json()
    assert len(medium) == 2

    assert client.get("/security/events", headers=admin_headers).get_json() == []

    assert client.delete("/security/events?log=login", headers=admin_headers).status_code == 200
    assert client.get("/security/events?log=login", headers=admin_headers).get_json() == []


def test_event_query_validation(client, admin_headers) -> None:
    assert client.get("/security/events?log=audit", headers=admin_headers).status_code == 400
    assert client.get("/security/events?hours=0", headers=admin_headers).status_code == 400
    assert client.get("/security/events?hours=-3", headers=admin_headers).status_code == 400
    assert client.delete("/security/events?log=audit", headers=admin_headers).status_code == 400


def test_export_is_an_attachment(client, admin_headers) -> None:
    fail(client, "a@example.com")
    resp = client.get("/security/export?log=login", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.mimetype == "application/json"
    assert resp.headers["Content-Disposition"] == "attachment; filename=security-log-2026-01-01.json"
    exported = json.loads(resp.get_data(as_text=True))
    assert exported[0]["type"] == "failed_login_attempt"


def test_monitor_events_reach_admin_endpoint(app, client, admin_headers) -> None:
    app.config["MONITOR_RAPID_CLICKS"] = 3
    monitor = get_monitor(SignalSurface())

    with monitor:
        for _ in range(4):
            monitor.surface.dispatch("click")
        monitor.surface.dispatch("copy")

    events = client.get("/security/events?log=behavior", headers=admin_headers).get_json()
    assert [e["type"] for e in events] == ["rapid_clicking_detected", "clipboard_copy"]
    assert events[0]["data"]["threshold"] == 3


def test_non_ascii_admin_token_is_rejected(client) -> None:
    resp = client.get("/security/events", headers={"X-Admin-Token": "café"})
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "Admin token required"


def test_overlong_identity_is_rejected(client, store) -> None:
    too_long = "a" * 300 + "@example.com"
    for path in ("/guard/check", "/guard/failure", "/guard/success"):
        resp = client.post(path, json={"identity": too_long})
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid identity"}
    assert client.get(f"/guard/status?identity={too_long}").status_code == 400
    assert store.keys("login_security_") == []
