import os
import tempfile
from datetime import datetime
from pathlib import Path

# Must be set before qaplus.core.config builds its Settings.
_DB_DIR = tempfile.mkdtemp(prefix="qaplus-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ["ENV"] = "dev"
os.environ["AUTH_JWT_SECRET"] = "test-secret"
os.environ["BILLING_TIMEZONE"] = "UTC"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

import qaplus.db.models  # noqa: F401, E402
from qaplus.access.rate_limit import reset_rate_limits  # noqa: E402
from qaplus.chatbots.models import Chatbot  # noqa: E402
from qaplus.db.base import Base  # noqa: E402
from qaplus.db.session import SessionLocal, engine  # noqa: E402
from qaplus.main import app  # noqa: E402
from qaplus.tenants.models import Tenant  # noqa: E402
from qaplus.tenants.plans import seed_plans  # noqa: E402
from qaplus.usage.models import QueryLog  # noqa: E402


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_rate_limits()
    session = SessionLocal()
    seed_plans(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def make_tenant(db):
    def _make(tenant_id: str = "t_acme", plan_code: str = "free", status: str = "active") -> Tenant:
        tenant = Tenant(id=tenant_id, name=tenant_id, plan_code=plan_code, status=status)
        db.add(tenant)
        db.commit()
        return tenant

    return _make


@pytest.fixture
def make_chatbot(db):
    def _make(
        chatbot_id: str = "bot_1",
        tenant_id: str = "t_acme",
        whitelist: list[str] | None = None,
        is_active: bool = True,
    ) -> Chatbot:
        bot = Chatbot(
            id=chatbot_id,
            tenant_id=tenant_id,
            name="Help Center",
            theme={"primaryColor": "#0055ff"},
            domain_whitelist=["qaplus.com"] if whitelist is None else whitelist,
            is_active=is_active,
        )
        db.add(bot)
        db.commit()
        return bot

    return _make


@pytest.fixture
def add_query_logs(db):
    def _add(
        count: int,
        *,
        tenant_id: str = "t_acme",
        chatbot_id: str = "bot_1",
        created_at: datetime | None = None,
        ignored: bool = False,
    ) -> None:
        when = created_at or datetime.utcnow()
        db.add_all(
            [
                QueryLog(
                    id=f"ql_seed_{tenant_id}_{when.timestamp():.0f}_{ignored}_{i}",
                    tenant_id=tenant_id,
                    chatbot_id=chatbot_id,
                    query="seed",
                    ignored=ignored,
                    created_at=when,
                )
                for i in range(count)
            ]
        )
        db.commit()

    return _add


@pytest.fixture
def operator_headers():
    def _headers(tenant_id: str = "t_acme") -> dict[str, str]:
        token = jwt.encode(
            {"sub": "u_owner", "tenant_id": tenant_id, "aud": "authenticated"},
            "test-secret",
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers
