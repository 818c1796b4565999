from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from qaplus.db.base import Base


class QueryLog(Base):
    """Append-only record of an answered public query.

    Only ``ignored`` may change after insert (retroactive exclusion of
    test/internal traffic); monthly usage is always derived by counting.
    """

    __tablename__ = "query_logs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # e.g. ql_abc123
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    chatbot_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    session_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    query: Mapped[str] = mapped_column(Text, nullable=False)
    result_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ignored: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


Index("ix_query_logs_tenant_created_at", QueryLog.tenant_id, QueryLog.created_at)
