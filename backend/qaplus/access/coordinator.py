import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, TypeVar

from sqlalchemy.orm import Session

from qaplus.core.config import settings
from qaplus.core.errors import (
    WHITELIST_MESSAGES,
    AccessDenied,
    AnsweringFailed,
    QuotaExceeded,
    SessionInvalid,
)
from qaplus.embed.whitelist import DomainWhitelistGuard
from qaplus.sessions.service import SessionTokenService
from qaplus.usage.models import QueryLog
from qaplus.usage.service import TENANT_SUSPENDED, MonthlyQuotaCounter, write_query_log

logger = logging.getLogger(__name__)

A = TypeVar("A")


@dataclass
class AccessGrant:
    chatbot_id: str
    tenant_id: str
    session_id: str
    remaining_session_queries: int


@dataclass
class AnswerOutcome:
    """What the answering pipeline hands back for logging."""

    result_count: int = 0
    ignored: bool = False


class PublicAccessCoordinator:
    """Single allow/deny decision for an inbound public chat query.

    Checks run in a fixed order: domain whitelist, session cap, tenant
    monthly cap. The first denial ends the request. The tenant cap overrides
    any remaining session allowance.
    """

    def __init__(
        self,
        db: Session,
        *,
        whitelist: DomainWhitelistGuard | None = None,
        sessions: SessionTokenService | None = None,
        quota: MonthlyQuotaCounter | None = None,
    ):
        self.db = db
        self.whitelist = whitelist or DomainWhitelistGuard(db)
        self.sessions = sessions or SessionTokenService(db)
        self.quota = quota or MonthlyQuotaCounter(db)

    def admit(
        self,
        *,
        chatbot_id: str,
        token: str | None,
        origin: str | None,
        referer: str | None = None,
        now: datetime | None = None,
    ) -> AccessGrant:
        decision = self.whitelist.check_origin(chatbot_id, origin, referer)
        decision.raise_for_denial()
        tenant_id = decision.chatbot.tenant_id

        check = self.sessions.consume(token or "", chatbot_id, now=now)
        if not check.valid:
            logger.info("Session denied: chatbot=%s reason=%s", chatbot_id, check.reason)
            raise SessionInvalid(check.reason)

        try:
            quota = self.quota.check_and_reserve(tenant_id, now=now)
        except Exception:
            self.sessions.release(check.session_id)
            raise

        if not quota.allowed:
            # Nothing was delivered; the session unit goes back.
            self.sessions.release(check.session_id)
            logger.info("Tenant denied: chatbot=%s reason=%s", chatbot_id, quota.reason)
            if quota.reason == TENANT_SUSPENDED:
                raise AccessDenied(WHITELIST_MESSAGES[TENANT_SUSPENDED], code=TENANT_SUSPENDED)
            raise QuotaExceeded()

        return AccessGrant(
            chatbot_id=chatbot_id,
            tenant_id=tenant_id,
            session_id=check.session_id,
            remaining_session_queries=check.remaining,
        )

    def record_answer(
        self,
        grant: AccessGrant,
        *,
        query: str,
        outcome: AnswerOutcome,
        now: datetime | None = None,
    ) -> QueryLog:
        row = write_query_log(
            self.db,
            tenant_id=grant.tenant_id,
            chatbot_id=grant.chatbot_id,
            session_id=grant.session_id,
            query=query,
            result_count=outcome.result_count,
            ignored=outcome.ignored,
            now=now,
        )
        if outcome.ignored and not settings.SESSION_COUNTS_IGNORED_QUERIES:
            if self.sessions.release(grant.session_id):
                grant.remaining_session_queries += 1
        return row

    def handle_query(
        self,
        *,
        chatbot_id: str,
        token: str | None,
        query: str,
        origin: str | None,
        referer: str | None,
        answer: Callable[[AccessGrant, str], tuple[A, AnswerOutcome]],
        now: datetime | None = None,
    ) -> tuple[AccessGrant, A, QueryLog]:
        grant = self.admit(
            chatbot_id=chatbot_id,
            token=token,
            origin=origin,
            referer=referer,
            now=now,
        )

        try:
            result, outcome = answer(grant, query)
        except AnsweringFailed:
            self.sessions.release(grant.session_id)
            raise

        # Charged only for delivered answers.
        try:
            row = self.record_answer(grant, query=query, outcome=outcome, now=now)
        except Exception:
            self.sessions.release(grant.session_id)
            raise
        return grant, result, row
