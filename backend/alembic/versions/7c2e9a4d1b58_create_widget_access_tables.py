"""create plans, tenants, chatbots, widget sessions and query logs

Revision ID: 7c2e9a4d1b58
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "7c2e9a4d1b58"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    plans = op.create_table(
        "plans",
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("max_chatbots", sa.Integer(), nullable=True),
        sa.Column("max_faqs_per_bot", sa.Integer(), nullable=True),
        sa.Column("max_queries_per_month", sa.Integer(), nullable=True),
        sa.Column("enable_analytics", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("enable_api", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("enable_export", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("price_usd_monthly", sa.Float(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("code"),
    )

    op.create_table(
        "tenants",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("plan_code", sa.String(length=32), nullable=False, server_default="free"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "chatbots",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("theme", sa.JSON(), nullable=False),
        sa.Column("domain_whitelist", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_chatbots_tenant_id"), "chatbots", ["tenant_id"], unique=False)

    op.create_table(
        "widget_sessions",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("chatbot_id", sa.String(length=64), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("query_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("query_limit", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("query_count >= 0", name="ck_widget_sessions_query_count_nonneg"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_widget_sessions_token_hash"), "widget_sessions", ["token_hash"], unique=True)
    op.create_index(op.f("ix_widget_sessions_chatbot_id"), "widget_sessions", ["chatbot_id"], unique=False)
    op.create_index(op.f("ix_widget_sessions_tenant_id"), "widget_sessions", ["tenant_id"], unique=False)
    op.create_index(
        "ix_widget_sessions_chatbot_expires",
        "widget_sessions",
        ["chatbot_id", "expires_at"],
        unique=False,
    )

    op.create_table(
        "query_logs",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("chatbot_id", sa.String(length=64), nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=True),
        sa.Column("query", sa.Text(), nullable=False),
        sa.Column("result_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ignored", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_query_logs_tenant_id"), "query_logs", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_query_logs_chatbot_id"), "query_logs", ["chatbot_id"], unique=False)
    op.create_index(op.f("ix_query_logs_session_id"), "query_logs", ["session_id"], unique=False)
    op.create_index("ix_query_logs_tenant_created_at", "query_logs", ["tenant_id", "created_at"], unique=False)

    op.bulk_insert(
        plans,
        [
            {"code": "free", "name": "Free", "max_chatbots": 1, "max_faqs_per_bot": 50,
             "max_queries_per_month": 1000, "enable_analytics": False, "enable_api": False,
             "enable_export": False, "price_usd_monthly": 0},
            {"code": "starter", "name": "Starter", "max_chatbots": 3, "max_faqs_per_bot": 200,
             "max_queries_per_month": 5000, "enable_analytics": True, "enable_api": False,
             "enable_export": True, "price_usd_monthly": 29.99},
            {"code": "pro", "name": "Pro", "max_chatbots": 10, "max_faqs_per_bot": 1000,
             "max_queries_per_month": 20000, "enable_analytics": True, "enable_api": True,
             "enable_export": True, "price_usd_monthly": 99.99},
            {"code": "enterprise", "name": "Enterprise", "max_chatbots": None, "max_faqs_per_bot": None,
             "max_queries_per_month": None, "enable_analytics": True, "enable_api": True,
             "enable_export": True, "price_usd_monthly": 299.99},
        ],
    )


def downgrade() -> None:
    op.drop_index("ix_query_logs_tenant_created_at", table_name="query_logs")
    op.drop_index(op.f("ix_query_logs_session_id"), table_name="query_logs")
    op.drop_index(op.f("ix_query_logs_chatbot_id"), table_name="query_logs")
    op.drop_index(op.f("ix_query_logs_tenant_id"), table_name="query_logs")
    op.drop_table("query_logs")
    op.drop_index("ix_widget_sessions_chatbot_expires", table_name="widget_sessions")
    op.drop_index(op.f("ix_widget_sessions_tenant_id"), table_name="widget_sessions")
    op.drop_index(op.f("ix_widget_sessions_chatbot_id"), table_name="widget_sessions")
    op.drop_index(op.f("ix_widget_sessions_token_hash"), table_name="widget_sessions")
    op.drop_table("widget_sessions")
    op.drop_index(op.f("ix_chatbots_tenant_id"), table_name="chatbots")
    op.drop_table("chatbots")
    op.drop_table("tenants")
    op.drop_table("plans")
