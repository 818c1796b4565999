import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

import pytest

from qaplus.core.errors import ChatbotInactive, ChatbotNotFound
from qaplus.db.session import SessionLocal
from qaplus.sessions.models import WidgetSession
from qaplus.sessions.service import SessionTokenService, hash_session_token

T0 = datetime(2026, 5, 10, 8, 0, 0)


def test_issue_persists_hashed_token_with_snapshot_limit(db, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot()

    issued = SessionTokenService(db, max_queries=7).issue("bot_1", now=T0)

    row = db.get(WidgetSession, issued.session_id)
    assert len(issued.token) >= 43  # 32 random bytes, urlsafe
    assert row.token_hash == hash_session_token(issued.token)
    assert issued.token not in row.token_hash
    assert row.query_count == 0
    assert row.query_limit == 7
    assert row.tenant_id == "t_acme"
    assert issued.expires_at == T0 + timedelta(hours=24)
    assert row.state(T0) == "issued"


def test_issue_refuses_unknown_and_inactive_chatbots(db, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot("bot_paused", is_active=False)
    service = SessionTokenService(db)

    with pytest.raises(ChatbotNotFound):
        service.issue("bot_missing")
    with pytest.raises(ChatbotInactive):
        service.issue("bot_paused")


def test_expiry_boundary_is_absolute(db, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot()
    service = SessionTokenService(db)
    issued = service.issue("bot_1", now=T0)

    before = service.validate(issued.token, "bot_1", now=T0 + timedelta(hours=24) - timedelta(seconds=1))
    at = service.validate(issued.token, "bot_1", now=T0 + timedelta(hours=24))
    after = service.validate(issued.token, "bot_1", now=T0 + timedelta(hours=24, seconds=1))

    assert before.valid is True
    assert at.valid is False and at.reason == "SessionExpired"
    assert after.valid is False and after.reason == "SessionExpired"


def test_expired_session_is_not_renewed_by_use(db, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot()
    service = SessionTokenService(db)
    issued = service.issue("bot_1", now=T0)
    late = T0 + timedelta(hours=25)

    assert service.consume(issued.token, "bot_1", now=late).reason == "SessionExpired"
    assert service.consume(issued.token, "bot_1", now=late).reason == "SessionExpired"
    db.expire_all()
    row = db.get(WidgetSession, issued.session_id)
    assert row.expires_at == T0 + timedelta(hours=24)
    assert row.query_count == 0


def test_validate_rejects_unknown_token_and_other_chatbot(db, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot("bot_1")
    make_chatbot("bot_2")
    service = SessionTokenService(db)
    issued = service.issue("bot_1", now=T0)

    assert service.validate("not-a-token", "bot_1", now=T0).reason == "SessionNotFound"
    assert service.validate(issued.token, "bot_2", now=T0).reason == "SessionChatbotMismatch"
    assert service.consume(issued.token, "bot_2", now=T0).reason == "SessionChatbotMismatch"


def test_consume_counts_down_then_exhausts(db, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot()
    service = SessionTokenService(db, max_queries=3)
    issued = service.issue("bot_1", now=T0)

    results = [service.consume(issued.token, "bot_1", now=T0) for _ in range(4)]

    assert [r.remaining for r in results[:3]] == [2, 1, 0]
    assert results[3].valid is False
    assert results[3].reason == "SessionExhausted"
    assert service.validate(issued.token, "bot_1", now=T0).reason == "SessionExhausted"


def test_concurrent_consume_admits_exactly_the_limit(db, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot()
    limit = 5
    attempts = 12
    issued = SessionTokenService(db, max_queries=limit).issue("bot_1")
    barrier = threading.Barrier(attempts)

    def _attempt(_):
        session = SessionLocal()
        try:
            barrier.wait(timeout=10)
            return SessionTokenService(session).consume(issued.token, "bot_1")
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        results = list(pool.map(_attempt, range(attempts)))

    granted = [r for r in results if r.valid]
    denied = [r for r in results if not r.valid]
    assert len(granted) == limit
    assert len(denied) == attempts - limit
    assert {r.reason for r in denied} == {"SessionExhausted"}
    assert sorted(r.remaining for r in granted) == list(range(limit))

    db.expire_all()
    assert db.get(WidgetSession, issued.session_id).query_count == limit


def test_release_never_goes_below_zero(db, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot()
    service = SessionTokenService(db, max_queries=2)
    issued = service.issue("bot_1", now=T0)
    service.consume(issued.token, "bot_1", now=T0)

    assert service.release(issued.session_id) is True
    assert service.release(issued.session_id) is False
    db.expire_all()
    assert db.get(WidgetSession, issued.session_id).query_count == 0


def test_init_endpoint_issues_token_for_whitelisted_origin(client, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot()

    resp = client.post(
        "/sessions/init",
        json={"chatbot_id": "bot_1"},
        headers={"Origin": "https://qaplus.com"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert set(body) == {"token", "expires_at", "max_queries"}
    assert body["max_queries"] == 50

    status = client.get(
        "/sessions/status",
        params={"chatbot_id": "bot_1"},
        headers={"Authorization": f"Bearer {body['token']}"},
    )
    assert status.status_code == 200
    assert status.json()["remaining_queries"] == 50


def test_init_endpoint_fails_closed(client, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot("bot_unconfigured", whitelist=[])
    make_chatbot("bot_paused", is_active=False)

    unconfigured = client.post(
        "/sessions/init",
        json={"chatbot_id": "bot_unconfigured"},
        headers={"Origin": "http://localhost:3000"},
    )
    no_origin = client.post("/sessions/init", json={"chatbot_id": "bot_paused"})
    paused = client.post(
        "/sessions/init",
        json={"chatbot_id": "bot_paused"},
        headers={"Origin": "https://qaplus.com"},
    )

    assert unconfigured.status_code == 403
    assert unconfigured.json()["code"] == "WhitelistNotConfigured"
    assert no_origin.status_code == 403
    assert no_origin.json()["code"] == "MissingOrigin"
    assert paused.status_code == 403
    assert paused.json()["code"] == "chatbot_inactive"


def test_init_endpoint_is_throttled_per_client(client, make_tenant, make_chatbot, monkeypatch):
    from qaplus.core.config import settings

    make_tenant()
    make_chatbot()
    monkeypatch.setattr(settings, "SESSION_INIT_RATE_LIMIT", 2)

    codes = [
        client.post(
            "/sessions/init",
            json={"chatbot_id": "bot_1"},
            headers={"Origin": "https://qaplus.com"},
        ).status_code
        for _ in range(3)
    ]

    assert codes == [200, 200, 429]


def test_status_endpoint_reports_expired_token_as_401(client, db, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot()
    issued = SessionTokenService(db).issue("bot_1", now=datetime.utcnow() - timedelta(hours=30))

    resp = client.get(
        "/sessions/status",
        params={"chatbot_id": "bot_1"},
        headers={"Authorization": f"Bearer {issued.token}"},
    )

    assert resp.status_code == 401
    assert resp.json()["code"] == "SessionExpired"


def test_explicit_zero_cap_is_not_replaced_by_default(db, make_tenant, make_chatbot):
    make_tenant()
    make_chatbot()

    issued = SessionTokenService(db, max_queries=0).issue("bot_1", now=T0)

    assert issued.max_queries == 0
    assert SessionTokenService(db).validate(issued.token, "bot_1", now=T0).reason == "SessionExhausted"
