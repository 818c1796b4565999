from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from qaplus.auth.deps import Operator, get_current_operator
from qaplus.chatbots.models import Chatbot
from qaplus.chatbots.schemas import DomainWhitelistOut, DomainWhitelistUpdate, PublicChatbotConfig
from qaplus.db.session import get_db
from qaplus.embed.whitelist import DomainWhitelistGuard, normalize_whitelist

router = APIRouter()


def _require_chatbot_for_tenant(db: Session, *, tenant_id: str, chatbot_id: str) -> Chatbot:
    chatbot = db.execute(
        select(Chatbot).where(
            Chatbot.id == chatbot_id,
            Chatbot.tenant_id == tenant_id,
        )
    ).scalar_one_or_none()
    if not chatbot:
        raise HTTPException(status_code=404, detail="Chatbot not found")
    return chatbot


@router.get("/{chatbot_id}/public-config", response_model=PublicChatbotConfig)
def get_public_config(
    chatbot_id: str,
    request: Request,
    db: Session = Depends(get_db),
):
    decision = DomainWhitelistGuard(db).check_origin(
        chatbot_id,
        request.headers.get("origin"),
        request.headers.get("referer"),
    )
    decision.raise_for_denial()

    chatbot = decision.chatbot
    return PublicChatbotConfig(
        id=chatbot.id,
        name=chatbot.name,
        description=chatbot.description,
        theme=chatbot.theme or {},
        is_active=chatbot.is_active,
    )


@router.put("/{chatbot_id}/domain-whitelist", response_model=DomainWhitelistOut)
def put_domain_whitelist(
    chatbot_id: str,
    payload: DomainWhitelistUpdate,
    db: Session = Depends(get_db),
    operator: Operator = Depends(get_current_operator),
):
    chatbot = _require_chatbot_for_tenant(db, tenant_id=operator.tenant_id, chatbot_id=chatbot_id)
    chatbot.domain_whitelist = normalize_whitelist(payload.domains)
    chatbot.updated_at = datetime.utcnow()
    db.add(chatbot)
    db.commit()
    db.refresh(chatbot)
    return DomainWhitelistOut(
        chatbot_id=chatbot.id,
        domains=list(chatbot.domain_whitelist),
        updated_at=chatbot.updated_at,
    )
