import http.client
import json
import logging
from urllib import request

from qaplus.access.coordinator import AccessGrant, AnswerOutcome
from qaplus.core.config import settings
from qaplus.core.errors import AnsweringFailed

logger = logging.getLogger(__name__)


def ask_answering_pipeline(grant: AccessGrant, query: str) -> tuple[dict, AnswerOutcome]:
    """Forward an admitted query to the FAQ answering service."""
    if not settings.ANSWERING_PIPELINE_URL:
        logger.error("ANSWERING_PIPELINE_URL is not configured")
        raise AnsweringFailed()

    body = json.dumps(
        {
            "chatbot_id": grant.chatbot_id,
            "tenant_id": grant.tenant_id,
            "session_id": grant.session_id,
            "query": query,
        }
    ).encode("utf-8")
    req = request.Request(
        settings.ANSWERING_PIPELINE_URL,
        data=body,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with request.urlopen(req, timeout=settings.ANSWERING_PIPELINE_TIMEOUT_SECONDS) as resp:
            payload = json.loads(resp.read().decode("utf-8") or "{}")
    except (OSError, http.client.HTTPException, ValueError) as exc:
        logger.warning("Answering pipeline failed for chatbot=%s: %s", grant.chatbot_id, exc)
        raise AnsweringFailed() from exc

    if not isinstance(payload, dict):
        raise AnsweringFailed()

    qa_blocks = payload.get("qa_blocks") or []
    outcome = AnswerOutcome(
        result_count=len(qa_blocks),
        ignored=bool(payload.get("ignored", False)),
    )
    return payload, outcome
