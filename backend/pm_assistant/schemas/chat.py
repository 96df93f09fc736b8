from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pm_assistant.config import settings


class Tone(str, Enum):
    direct = "Direct"
    soft = "Soft"
    technical = "Technical"


class Source(BaseModel):
    type: str
    id: str
    name: str
    description: str | None = None


class ChatQueryRequest(BaseModel):
    question: str = Field(min_length=1, max_length=settings.max_question_length)
    project_id: UUID | None = None
    parent_session_id: UUID | None = None
    include_history: bool = True

    @field_validator("question")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Question is required")
        return value


class ChatResponse(BaseModel):
    session_id: str
    response: str
    confidence: float | None = None
    sources: list[Source] = Field(default_factory=list)
    model: str | None = None
    token_count: int | None = None
    response_time_ms: int | None = None


class ChatSessionSummary(BaseModel):
    id: str
    project_id: str | None = None
    project_name: str | None = None
    question: str
    response: str | None = None
    confidence: float | None = None
    sources: list[Source] = Field(default_factory=list)
    parent_session_id: str | None = None
    created_at: datetime
    model: str | None = None


class ChatSessionDetail(ChatSessionSummary):
    follow_up_ids: list[str] = Field(default_factory=list)


class StyleProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    tone: Tone
    prefer_bullets: bool
    include_risks_by_default: bool
    auto_create_tasks: bool


class StyleProfileUpdate(BaseModel):
    tone: Tone | None = None
    prefer_bullets: bool | None = None
    include_risks_by_default: bool | None = None
    auto_create_tasks: bool | None = None
