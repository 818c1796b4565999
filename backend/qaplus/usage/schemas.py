from datetime import datetime

from pydantic import BaseModel


class PlanRef(BaseModel):
    code: str
    name: str


class MonthlyQueries(BaseModel):
    current: int
    max: int | None = None


class QuotaUsageOut(BaseModel):
    tenant_id: str
    tenant_status: str
    plan: PlanRef
    window_start: datetime
    queries_monthly: MonthlyQueries


class QueryLogIgnoreRequest(BaseModel):
    ignored: bool


class QueryLogOut(BaseModel):
    id: str
    chatbot_id: str
    session_id: str | None = None
    query: str
    result_count: int
    ignored: bool
    created_at: datetime
