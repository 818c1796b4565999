import logging

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError
from sqlalchemy.orm import Session

from qaplus.access.coordinator import AccessGrant, AnswerOutcome, PublicAccessCoordinator
from qaplus.access.rate_limit import check_rate_limit
from qaplus.core.config import settings
from qaplus.core.errors import AnsweringFailed, RateLimited
from qaplus.db.session import get_db
from qaplus.query.pipeline import ask_answering_pipeline
from qaplus.query.schemas import ChatAnswer, ChatQueryRequest, ChatQueryResponse

logger = logging.getLogger(__name__)

router = APIRouter()

session_bearer = HTTPBearer(auto_error=False)


def _answer(grant: AccessGrant, query: str) -> tuple[ChatAnswer, AnswerOutcome]:
    """Ask the pipeline and shape its payload before anything is charged."""
    payload, outcome = ask_answering_pipeline(grant, query)
    try:
        answer = ChatAnswer.model_validate(
            {"intro": payload.get("intro"), "qa_blocks": payload.get("qa_blocks") or []}
        )
    except (AttributeError, ValidationError) as exc:
        logger.warning("Malformed answer for chatbot=%s: %s", grant.chatbot_id, exc)
        raise AnsweringFailed() from exc
    return answer, outcome


@router.post("/chat", response_model=ChatQueryResponse)
def chat(
    payload: ChatQueryRequest,
    request: Request,
    db: Session = Depends(get_db),
    creds: HTTPAuthorizationCredentials | None = Depends(session_bearer),
):
    client_ip = request.client.host if request.client else "unknown"
    allowed, _ = check_rate_limit(scope="query", key=client_ip, limit=settings.QUERY_RATE_LIMIT)
    if not allowed:
        raise RateLimited()

    coordinator = PublicAccessCoordinator(db)
    grant, answer, log_row = coordinator.handle_query(
        chatbot_id=payload.chatbot_id,
        token=creds.credentials if creds else None,
        query=payload.query,
        origin=request.headers.get("origin"),
        referer=request.headers.get("referer"),
        answer=_answer,
    )

    return ChatQueryResponse(
        intro=answer.intro,
        qa_blocks=answer.qa_blocks,
        log_id=log_row.id,
        remaining_queries=grant.remaining_session_queries,
    )
