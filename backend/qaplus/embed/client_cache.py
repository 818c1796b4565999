"""Widget-side session token handling.

Mirrors what the embedded widget keeps in browser local storage: the token,
the chatbot it belongs to and its expiry. The cache is only a hint; the
server-side session row decides. A cached token is dropped once it is within
the safety margin of its expiry, or when the server reports it gone.
"""

from collections.abc import MutableMapping
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx

TOKEN_KEY = "qaplus_session_token"
CHATBOT_KEY = "qaplus_session_token_chatbot"
EXPIRES_KEY = "qaplus_session_token_expires"

EXPIRY_SAFETY_MARGIN = timedelta(seconds=60)
REISSUE_CODES = {"SessionExpired", "SessionNotFound"}


def _parse_expiry(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class WidgetSessionClient:
    def __init__(
        self,
        http: httpx.Client,
        *,
        origin: str,
        storage: MutableMapping[str, str] | None = None,
        clock: Callable[[], datetime] | None = None,
        safety_margin: timedelta = EXPIRY_SAFETY_MARGIN,
    ):
        self.http = http
        self.origin = origin
        self.storage = storage if storage is not None else {}
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.safety_margin = safety_margin

    def cached_token(self, chatbot_id: str) -> str | None:
        token = self.storage.get(TOKEN_KEY)
        if not token or self.storage.get(CHATBOT_KEY) != chatbot_id:
            return None

        expires_at = self.storage.get(EXPIRES_KEY)
        if expires_at and self.clock() >= _parse_expiry(expires_at) - self.safety_margin:
            self.clear()
            return None
        return token

    def clear(self) -> None:
        for key in (TOKEN_KEY, CHATBOT_KEY, EXPIRES_KEY):
            self.storage.pop(key, None)

    def init_session(self, chatbot_id: str) -> str:
        resp = self.http.post(
            "/sessions/init",
            json={"chatbot_id": chatbot_id},
            headers={"Origin": self.origin},
        )
        resp.raise_for_status()
        data = resp.json()
        self.storage[TOKEN_KEY] = data["token"]
        self.storage[CHATBOT_KEY] = chatbot_id
        self.storage[EXPIRES_KEY] = data["expires_at"]
        return data["token"]

    def get_or_init(self, chatbot_id: str) -> str:
        return self.cached_token(chatbot_id) or self.init_session(chatbot_id)

    def _post_query(self, chatbot_id: str, query: str, token: str) -> httpx.Response:
        return self.http.post(
            "/query/chat",
            json={"chatbot_id": chatbot_id, "query": query},
            headers={"Origin": self.origin, "Authorization": f"Bearer {token}"},
        )

    def ask(self, chatbot_id: str, query: str) -> httpx.Response:
        """Send a query; re-issue once if the server no longer knows the token."""
        resp = self._post_query(chatbot_id, query, self.get_or_init(chatbot_id))
        if resp.status_code == 401 and resp.json().get("code") in REISSUE_CODES:
            self.clear()
            resp = self._post_query(chatbot_id, query, self.init_session(chatbot_id))
        return resp
