from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from qaplus.db.session import get_db
from qaplus.tenants.models import Plan
from qaplus.tenants.schemas import PlanOut

router = APIRouter()


@router.get("", response_model=list[PlanOut])
def list_plans(db: Session = Depends(get_db)):
    return db.execute(select(Plan).order_by(Plan.price_usd_monthly.asc())).scalars().all()


@router.get("/{code}", response_model=PlanOut)
def get_plan(code: str, db: Session = Depends(get_db)):
    plan = db.get(Plan, code)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    return plan
