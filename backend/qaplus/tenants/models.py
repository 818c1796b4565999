from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from qaplus.db.base import Base


class Plan(Base):
    __tablename__ = "plans"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)  # free|starter|pro|enterprise
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # NULL = unlimited
    max_chatbots: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_faqs_per_bot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_queries_per_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    enable_analytics: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    enable_api: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    enable_export: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    price_usd_monthly: Mapped[float] = mapped_column(Float, nullable=False, default=0)


class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Plain identifier; resolved through TenantPlanRegistry, not a relationship.
    plan_code: Mapped[str] = mapped_column(String(32), nullable=False, default="free")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
