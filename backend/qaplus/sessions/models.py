from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from qaplus.db.base import Base


class WidgetSession(Base):
    __tablename__ = "widget_sessions"
    __table_args__ = (
        CheckConstraint("query_count >= 0", name="ck_widget_sessions_query_count_nonneg"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # e.g. ws_abc123
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    chatbot_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    query_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    query_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def state(self, now: datetime) -> str:
        if now >= self.expires_at:
            return "expired"
        if self.query_count >= self.query_limit:
            return "exhausted"
        if self.query_count == 0:
            return "issued"
        return "active"


Index("ix_widget_sessions_chatbot_expires", WidgetSession.chatbot_id, WidgetSession.expires_at)
