from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from qaplus.core.config import settings

DATABASE_URL = settings.DATABASE_URL


def build_engine_kwargs(database_url: str) -> dict:
    """Engine options with every data-store wait bounded by the lookup timeout."""
    timeout = max(1, int(settings.DB_LOOKUP_TIMEOUT_SECONDS))

    if database_url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False, "timeout": timeout},
            "pool_pre_ping": True,
        }

    return {
        "connect_args": {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000}",
        },
        "pool_pre_ping": True,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": min(settings.DB_POOL_TIMEOUT, timeout),
        "pool_recycle": settings.DB_POOL_RECYCLE,
    }


engine = create_engine(DATABASE_URL, **build_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
