import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine.url import make_url

from qaplus.chatbots.router import router as chatbots_router
from qaplus.core.config import settings
from qaplus.core.errors import ConfigurationFault, PublicAccessError
from qaplus.db.init_db import init_db
from qaplus.db.session import engine
from qaplus.query.router import router as query_router
from qaplus.sessions.router import router as sessions_router
from qaplus.tenants.router import router as plans_router
from qaplus.usage.router import router as usage_router

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(
    title="QAPlus Widget Access API",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.exception_handler(PublicAccessError)
def handle_public_access_error(request: Request, exc: PublicAccessError) -> JSONResponse:
    if isinstance(exc, ConfigurationFault):
        logger.error("Configuration fault on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "code": exc.code},
    )


@app.on_event("startup")
def on_startup() -> None:
    db_url = make_url(settings.DATABASE_URL)
    logger.info(
        "Config sanity: env=%s db_host=%s session_ttl_h=%s session_max_queries=%s billing_tz=%s "
        "allow_localhost=%s",
        settings.ENV,
        db_url.host or "local",
        settings.SESSION_TTL_HOURS,
        settings.SESSION_MAX_QUERIES,
        settings.BILLING_TIMEZONE,
        settings.ALLOW_LOCALHOST_ORIGINS,
    )
    init_db()


# --- Routers ---
app.include_router(chatbots_router, prefix="/chatbots", tags=["chatbots"])
app.include_router(sessions_router, prefix="/sessions", tags=["sessions"])
app.include_router(query_router, prefix="/query", tags=["query"])
app.include_router(plans_router, prefix="/plans", tags=["plans"])
app.include_router(usage_router, prefix="/usage", tags=["usage"])


# --- System ---
@app.get("/health", tags=["system"])
def health():
    return {"status": "ok"}


@app.get("/ready", tags=["system"])
def readiness():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        raise HTTPException(status_code=503, detail="Database not ready")
    return {"status": "ready"}
