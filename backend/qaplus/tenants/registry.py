import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from qaplus.core.errors import PlanNotFound, TenantNotFound
from qaplus.core.lookup import with_lookup_retry
from qaplus.tenants.models import Plan, Tenant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectiveLimits:
    tenant_id: str
    tenant_status: str
    plan_code: str
    plan_name: str
    # None = unlimited
    max_queries_per_month: int | None
    max_chatbots: int | None
    max_faqs_per_bot: int | None

    def allows_queries(self, used: int) -> bool:
        if self.max_queries_per_month is None:
            return True
        return used < self.max_queries_per_month


class TenantPlanRegistry:
    """Read-only view over the billing-owned tenant and plan rows."""

    def __init__(self, db: Session):
        self.db = db

    def get_tenant(self, tenant_id: str) -> Tenant:
        tenant = with_lookup_retry(self.db, "tenant", lambda: self.db.get(Tenant, tenant_id))
        if tenant is None:
            logger.critical("Configuration fault: tenant %s is missing", tenant_id)
            raise TenantNotFound(tenant_id)
        return tenant

    def get_plan(self, code: str) -> Plan | None:
        return with_lookup_retry(self.db, "plan", lambda: self.db.get(Plan, code))

    def get_effective_limits(self, tenant_id: str) -> EffectiveLimits:
        tenant = self.get_tenant(tenant_id)
        plan = self.get_plan(tenant.plan_code)
        if plan is None:
            logger.critical(
                "Configuration fault: tenant %s references unknown plan %r",
                tenant_id,
                tenant.plan_code,
            )
            raise PlanNotFound(tenant_id, tenant.plan_code)

        return EffectiveLimits(
            tenant_id=tenant.id,
            tenant_status=tenant.status,
            plan_code=plan.code,
            plan_name=plan.name,
            max_queries_per_month=plan.max_queries_per_month,
            max_chatbots=plan.max_chatbots,
            max_faqs_per_bot=plan.max_faqs_per_bot,
        )
