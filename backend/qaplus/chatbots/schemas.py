from datetime import datetime

from pydantic import BaseModel, Field


class PublicChatbotConfig(BaseModel):
    id: str
    name: str
    description: str | None = None
    theme: dict = Field(default_factory=dict)
    is_active: bool


class DomainWhitelistUpdate(BaseModel):
    domains: list[str] = Field(default_factory=list, max_length=100)


class DomainWhitelistOut(BaseModel):
    chatbot_id: str
    domains: list[str]
    updated_at: datetime
