from qaplus.db.base import Base
from qaplus.db.session import SessionLocal, engine
from qaplus.tenants.plans import seed_plans
import qaplus.db.models  # noqa


def init_db():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_plans(db)
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
