from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from qaplus.auth.deps import Operator, get_current_operator
from qaplus.db.session import get_db
from qaplus.usage.schemas import QueryLogIgnoreRequest, QueryLogOut, QuotaUsageOut
from qaplus.usage.service import quota_usage, set_query_log_ignored

router = APIRouter()


@router.get("/quota", response_model=QuotaUsageOut)
def get_quota_usage(
    db: Session = Depends(get_db),
    operator: Operator = Depends(get_current_operator),
):
    return quota_usage(db, tenant_id=operator.tenant_id)


@router.patch("/query-logs/{log_id}", response_model=QueryLogOut)
def patch_query_log(
    log_id: str,
    payload: QueryLogIgnoreRequest,
    db: Session = Depends(get_db),
    operator: Operator = Depends(get_current_operator),
):
    row = set_query_log_ignored(
        db,
        tenant_id=operator.tenant_id,
        log_id=log_id,
        ignored=payload.ignored,
    )
    if not row:
        raise HTTPException(status_code=404, detail="Query log not found")
    return QueryLogOut(
        id=row.id,
        chatbot_id=row.chatbot_id,
        session_id=row.session_id,
        query=row.query,
        result_count=row.result_count,
        ignored=row.ignored,
        created_at=row.created_at,
    )
