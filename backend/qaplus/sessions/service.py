"""Anonymous, chatbot-scoped widget sessions.

Lifecycle: issued -> active -> expired | exhausted. Both end states are
terminal: an expired session is never renewed, the client asks for a new one.

The per-session counter is the only mutable state here. Every mutation is a
single conditional UPDATE so that concurrent requests on one token cannot
both pass the limit check before either increments.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from hashlib import sha256

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from qaplus.chatbots.models import Chatbot
from qaplus.core.config import settings
from qaplus.core.errors import ChatbotInactive, ChatbotNotFound
from qaplus.core.lookup import with_lookup_retry
from qaplus.sessions.models import WidgetSession

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND = "SessionNotFound"
SESSION_EXPIRED = "SessionExpired"
SESSION_EXHAUSTED = "SessionExhausted"
SESSION_CHATBOT_MISMATCH = "SessionChatbotMismatch"


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def hash_session_token(token: str) -> str:
    return sha256(token.encode("utf-8")).hexdigest()


@dataclass
class IssuedSession:
    token: str
    session_id: str
    expires_at: datetime
    max_queries: int


@dataclass
class SessionCheck:
    valid: bool
    reason: str | None = None
    session_id: str | None = None
    chatbot_id: str | None = None
    tenant_id: str | None = None
    expires_at: datetime | None = None
    query_limit: int | None = None
    remaining: int | None = None


def _invalid(reason: str) -> SessionCheck:
    return SessionCheck(valid=False, reason=reason)


class SessionTokenService:
    def __init__(
        self,
        db: Session,
        *,
        ttl: timedelta | None = None,
        max_queries: int | None = None,
    ):
        self.db = db
        self.ttl = ttl if ttl is not None else timedelta(hours=settings.SESSION_TTL_HOURS)
        self.max_queries = max_queries if max_queries is not None else settings.SESSION_MAX_QUERIES

    def issue(
        self,
        chatbot_id: str,
        *,
        ip_address: str | None = None,
        now: datetime | None = None,
    ) -> IssuedSession:
        chatbot = with_lookup_retry(self.db, "chatbot", lambda: self.db.get(Chatbot, chatbot_id))
        if chatbot is None:
            raise ChatbotNotFound()
        if not chatbot.is_active:
            raise ChatbotInactive()

        created_at = now or datetime.utcnow()
        token = generate_session_token()
        row = WidgetSession(
            id=f"ws_{secrets.token_hex(12)}",
            token_hash=hash_session_token(token),
            chatbot_id=chatbot.id,
            tenant_id=chatbot.tenant_id,
            ip_address=ip_address,
            query_count=0,
            query_limit=self.max_queries,
            created_at=created_at,
            expires_at=created_at + self.ttl,
        )

        def _insert():
            self.db.add(row)
            self.db.commit()

        with_lookup_retry(self.db, "session issue", _insert)
        logger.info("Session issued: chatbot=%s session=%s", chatbot.id, row.id)

        return IssuedSession(
            token=token,
            session_id=row.id,
            expires_at=row.expires_at,
            max_queries=row.query_limit,
        )

    def _load(self, token: str) -> WidgetSession | None:
        if not token:
            return None
        token_hash = hash_session_token(token)
        return with_lookup_retry(
            self.db,
            "session",
            lambda: self.db.execute(
                select(WidgetSession).where(WidgetSession.token_hash == token_hash)
            ).scalar_one_or_none(),
        )

    def validate(
        self,
        token: str,
        chatbot_id: str | None = None,
        *,
        now: datetime | None = None,
    ) -> SessionCheck:
        current = now or datetime.utcnow()
        row = self._load(token)
        if row is None:
            return _invalid(SESSION_NOT_FOUND)
        self.db.refresh(row)
        if chatbot_id is not None and row.chatbot_id != chatbot_id:
            return _invalid(SESSION_CHATBOT_MISMATCH)
        if current >= row.expires_at:
            return _invalid(SESSION_EXPIRED)
        if row.query_count >= row.query_limit:
            return _invalid(SESSION_EXHAUSTED)

        return SessionCheck(
            valid=True,
            session_id=row.id,
            chatbot_id=row.chatbot_id,
            tenant_id=row.tenant_id,
            expires_at=row.expires_at,
            query_limit=row.query_limit,
            remaining=row.query_limit - row.query_count,
        )

    def consume(
        self,
        token: str,
        chatbot_id: str,
        *,
        now: datetime | None = None,
    ) -> SessionCheck:
        current = now or datetime.utcnow()
        if not token:
            return _invalid(SESSION_NOT_FOUND)

        stmt = (
            update(WidgetSession)
            .where(
                WidgetSession.token_hash == hash_session_token(token),
                WidgetSession.chatbot_id == chatbot_id,
                WidgetSession.expires_at > current,
                WidgetSession.query_count < WidgetSession.query_limit,
            )
            .values(query_count=WidgetSession.query_count + 1)
            .returning(
                WidgetSession.id,
                WidgetSession.tenant_id,
                WidgetSession.expires_at,
                WidgetSession.query_count,
                WidgetSession.query_limit,
            )
            .execution_options(synchronize_session=False)
        )

        def _compare_and_increment():
            claimed = self.db.execute(stmt).one_or_none()
            self.db.commit()
            return claimed

        claimed = with_lookup_retry(self.db, "session consume", _compare_and_increment)
        if claimed is None:
            check = self.validate(token, chatbot_id, now=current)
            # Lost the race for the last unit between UPDATE and re-read.
            return check if not check.valid else _invalid(SESSION_EXHAUSTED)

        session_id, tenant_id, expires_at, count, limit = claimed
        return SessionCheck(
            valid=True,
            session_id=session_id,
            chatbot_id=chatbot_id,
            tenant_id=tenant_id,
            expires_at=expires_at,
            query_limit=limit,
            remaining=max(0, limit - count),
        )

    def release(self, session_id: str) -> bool:
        """Give back one unit, never below zero."""
        result = self.db.execute(
            update(WidgetSession)
            .where(WidgetSession.id == session_id, WidgetSession.query_count > 0)
            .values(query_count=WidgetSession.query_count - 1)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def recharge(self, session_id: str) -> bool:
        result = self.db.execute(
            update(WidgetSession)
            .where(WidgetSession.id == session_id)
            .values(query_count=WidgetSession.query_count + 1)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1
