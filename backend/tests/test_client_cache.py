from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import func, select

from qaplus.access.coordinator import AnswerOutcome
from qaplus.embed.client_cache import CHATBOT_KEY, EXPIRES_KEY, TOKEN_KEY, WidgetSessionClient
from qaplus.sessions.models import WidgetSession

EMBED_ORIGIN = "https://qaplus.com"
EXPIRY = datetime(2026, 5, 10, 8, 0, 0, tzinfo=timezone.utc)


def _session_count(db) -> int:
    return db.execute(select(func.count(WidgetSession.id))).scalar_one()


@pytest.fixture
def embedded(make_tenant, make_chatbot):
    make_tenant()
    make_chatbot()


@pytest.fixture
def offline_http():
    def _refuse(request):
        raise AssertionError(f"unexpected request to {request.url}")

    with httpx.Client(transport=httpx.MockTransport(_refuse), base_url="http://widget.test") as http:
        yield http


def _stored(token="tok_cached", chatbot_id="bot_1", expires=EXPIRY):
    return {TOKEN_KEY: token, CHATBOT_KEY: chatbot_id, EXPIRES_KEY: expires.isoformat().replace("+00:00", "Z")}


def test_cached_token_survives_page_reload(client, db, embedded):
    storage = {}
    first_page = WidgetSessionClient(client, origin=EMBED_ORIGIN, storage=storage)
    token = first_page.get_or_init("bot_1")

    reloaded = WidgetSessionClient(client, origin=EMBED_ORIGIN, storage=storage)

    assert reloaded.get_or_init("bot_1") == token
    assert storage[CHATBOT_KEY] == "bot_1"
    assert _session_count(db) == 1


def test_cached_token_is_dropped_inside_safety_margin(offline_http):
    storage = _stored()
    early = WidgetSessionClient(
        offline_http, origin=EMBED_ORIGIN, storage=storage, clock=lambda: EXPIRY - timedelta(seconds=61)
    )
    assert early.cached_token("bot_1") == "tok_cached"

    late = WidgetSessionClient(
        offline_http, origin=EMBED_ORIGIN, storage=storage, clock=lambda: EXPIRY - timedelta(seconds=59)
    )
    assert late.cached_token("bot_1") is None
    assert storage == {}


def test_cached_token_for_other_chatbot_is_not_reused(offline_http):
    storage = _stored(chatbot_id="bot_2")
    widget = WidgetSessionClient(
        offline_http, origin=EMBED_ORIGIN, storage=storage, clock=lambda: EXPIRY - timedelta(hours=1)
    )

    assert widget.cached_token("bot_1") is None


def test_ask_reissues_once_when_server_forgot_the_token(client, db, embedded, monkeypatch):
    monkeypatch.setattr(
        "qaplus.query.router.ask_answering_pipeline",
        lambda grant, query: ({"intro": "ok", "qa_blocks": []}, AnswerOutcome()),
    )
    storage = _stored(token="tok_forgotten", expires=datetime.now(timezone.utc) + timedelta(hours=2))
    widget = WidgetSessionClient(client, origin=EMBED_ORIGIN, storage=storage)

    resp = widget.ask("bot_1", "opening hours")

    assert resp.status_code == 200
    assert storage[TOKEN_KEY] != "tok_forgotten"
    assert _session_count(db) == 1


def test_ask_does_not_retry_other_denials(client, db, make_tenant, make_chatbot, monkeypatch):
    monkeypatch.setattr(
        "qaplus.query.router.ask_answering_pipeline",
        lambda grant, query: ({"intro": "ok", "qa_blocks": []}, AnswerOutcome()),
    )
    make_tenant()
    make_chatbot()
    widget = WidgetSessionClient(client, origin="https://evil.com")

    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        widget.ask("bot_1", "opening hours")

    assert exc_info.value.response.status_code == 403
    assert _session_count(db) == 0
