from pydantic import BaseModel, Field


class ChatQueryRequest(BaseModel):
    chatbot_id: str = Field(min_length=1, max_length=64)
    query: str = Field(min_length=1, max_length=2000)


class QABlock(BaseModel):
    faq_id: str
    question: str
    answer: str
    layout: str | None = None


class ChatAnswer(BaseModel):
    intro: str | None = None
    qa_blocks: list[QABlock] = Field(default_factory=list)


class ChatQueryResponse(ChatAnswer):
    log_id: str
    remaining_queries: int
