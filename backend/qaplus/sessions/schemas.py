from datetime import datetime

from pydantic import BaseModel, Field


class InitSessionRequest(BaseModel):
    chatbot_id: str = Field(min_length=1, max_length=64)


class InitSessionResponse(BaseModel):
    token: str
    expires_at: datetime
    max_queries: int


class SessionStatusResponse(BaseModel):
    chatbot_id: str
    expires_at: datetime
    max_queries: int
    remaining_queries: int
