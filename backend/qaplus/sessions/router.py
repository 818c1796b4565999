from datetime import timezone

from fastapi import APIRouter, Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from qaplus.access.rate_limit import check_rate_limit
from qaplus.core.config import settings
from qaplus.core.errors import RateLimited, SessionInvalid
from qaplus.db.session import get_db
from qaplus.embed.whitelist import DomainWhitelistGuard
from qaplus.sessions.schemas import InitSessionRequest, InitSessionResponse, SessionStatusResponse
from qaplus.sessions.service import SessionTokenService

router = APIRouter()

session_bearer = HTTPBearer(auto_error=False)


@router.post("/init", response_model=InitSessionResponse)
def init_session(
    payload: InitSessionRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    client_ip = request.client.host if request.client else "unknown"
    allowed, _ = check_rate_limit(
        scope="session_init",
        key=client_ip,
        limit=settings.SESSION_INIT_RATE_LIMIT,
    )
    if not allowed:
        raise RateLimited()

    decision = DomainWhitelistGuard(db).check_origin(
        payload.chatbot_id,
        request.headers.get("origin"),
        request.headers.get("referer"),
    )
    decision.raise_for_denial()

    issued = SessionTokenService(db).issue(payload.chatbot_id, ip_address=client_ip)
    return InitSessionResponse(
        token=issued.token,
        expires_at=issued.expires_at.replace(tzinfo=timezone.utc),
        max_queries=issued.max_queries,
    )


@router.get("/status", response_model=SessionStatusResponse)
def session_status(
    chatbot_id: str = Query(min_length=1, max_length=64),
    db: Session = Depends(get_db),
    creds: HTTPAuthorizationCredentials | None = Depends(session_bearer),
):
    check = SessionTokenService(db).validate(creds.credentials if creds else "", chatbot_id)
    if not check.valid:
        raise SessionInvalid(check.reason)

    return SessionStatusResponse(
        chatbot_id=check.chatbot_id,
        expires_at=check.expires_at.replace(tzinfo=timezone.utc),
        max_queries=check.query_limit,
        remaining_queries=check.remaining,
    )
