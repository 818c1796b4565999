import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from qaplus.core.config import settings
from qaplus.core.lookup import with_lookup_retry
from qaplus.sessions.service import SessionTokenService
from qaplus.tenants.registry import EffectiveLimits, TenantPlanRegistry
from qaplus.usage.models import QueryLog

logger = logging.getLogger(__name__)

TENANT_QUOTA_EXCEEDED = "TenantQuotaExceeded"
TENANT_SUSPENDED = "TenantSuspended"


def _billing_tz(tz_name: str | None = None):
    name = tz_name or settings.BILLING_TIMEZONE
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def window_start_month(now: datetime | None = None, tz_name: str | None = None) -> datetime:
    """00:00:00 on day 1 of the billing-zone calendar month, as naive UTC."""
    current = (now or datetime.utcnow()).replace(tzinfo=timezone.utc)
    tz = _billing_tz(tz_name)
    local = current.astimezone(tz)
    local_start = datetime(local.year, local.month, 1, tzinfo=tz)
    return local_start.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass
class QuotaDecision:
    allowed: bool
    reason: str | None = None
    limits: EffectiveLimits | None = None


class MonthlyQuotaCounter:
    """Tenant-wide monthly query cap, derived from the query log.

    The count and the later log append are not serialized: a burst of
    concurrent queries at the cap boundary can over-admit by at most the
    number of in-flight requests. Overage is reconciled at invoice time.
    """

    def __init__(self, db: Session, registry: TenantPlanRegistry | None = None):
        self.db = db
        self.registry = registry or TenantPlanRegistry(db)

    def current_usage(self, tenant_id: str, *, now: datetime | None = None) -> int:
        month_start = window_start_month(now)
        count = with_lookup_retry(
            self.db,
            "monthly usage",
            lambda: self.db.execute(
                select(func.count(QueryLog.id)).where(
                    QueryLog.tenant_id == tenant_id,
                    QueryLog.ignored.is_(False),
                    QueryLog.created_at >= month_start,
                )
            ).scalar_one(),
        )
        return int(count or 0)

    def check_and_reserve(self, tenant_id: str, *, now: datetime | None = None) -> QuotaDecision:
        limits = self.registry.get_effective_limits(tenant_id)

        if limits.tenant_status == "suspended":
            return QuotaDecision(allowed=False, reason=TENANT_SUSPENDED, limits=limits)

        if limits.max_queries_per_month is None:
            return QuotaDecision(allowed=True, limits=limits)

        used = self.current_usage(tenant_id, now=now)
        if not limits.allows_queries(used):
            logger.info(
                "Tenant quota exceeded: tenant=%s used=%s max=%s",
                tenant_id,
                used,
                limits.max_queries_per_month,
            )
            return QuotaDecision(allowed=False, reason=TENANT_QUOTA_EXCEEDED, limits=limits)

        return QuotaDecision(allowed=True, limits=limits)


def write_query_log(
    db: Session,
    *,
    tenant_id: str,
    chatbot_id: str,
    session_id: str | None,
    query: str,
    result_count: int = 0,
    ignored: bool = False,
    now: datetime | None = None,
) -> QueryLog:
    row = QueryLog(
        id=f"ql_{secrets.token_hex(12)}",
        tenant_id=tenant_id,
        chatbot_id=chatbot_id,
        session_id=session_id,
        query=query,
        result_count=max(0, int(result_count or 0)),
        ignored=bool(ignored),
        created_at=now or datetime.utcnow(),
    )

    def _insert():
        db.add(row)
        db.commit()
        return row

    return with_lookup_retry(db, "query log write", _insert)


def set_query_log_ignored(
    db: Session,
    *,
    tenant_id: str,
    log_id: str,
    ignored: bool,
) -> QueryLog | None:
    row = db.execute(
        select(QueryLog).where(QueryLog.id == log_id, QueryLog.tenant_id == tenant_id)
    ).scalar_one_or_none()
    if row is None:
        return None
    if row.ignored == ignored:
        return row

    row.ignored = ignored
    db.add(row)
    db.commit()

    if row.session_id and not settings.SESSION_COUNTS_IGNORED_QUERIES:
        sessions = SessionTokenService(db)
        if ignored:
            sessions.release(row.session_id)
        else:
            sessions.recharge(row.session_id)

    db.refresh(row)
    return row


def quota_usage(db: Session, *, tenant_id: str, now: datetime | None = None) -> dict:
    """Read-only report of the tenant's monthly query usage."""
    counter = MonthlyQuotaCounter(db)
    limits = counter.registry.get_effective_limits(tenant_id)
    current = counter.current_usage(tenant_id, now=now)

    return {
        "tenant_id": tenant_id,
        "tenant_status": limits.tenant_status,
        "plan": {"code": limits.plan_code, "name": limits.plan_name},
        "window_start": window_start_month(now),
        "queries_monthly": {
            "current": current,
            "max": limits.max_queries_per_month,
        },
    }
