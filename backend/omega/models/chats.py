"""Chat (session) models for conversation management."""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from omega.models.base import ApiModel
from omega.models.messages import MessageOut
from omega.prompts.loader import PromptMode


class ChatCreate(ApiModel):
    """Body of ``POST /chats``; every field is optional."""

    title: Optional[str] = Field(default=None, max_length=255)
    user_id: Optional[str] = None
    system_prompt: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    metadata: Optional[dict[str, Any]] = None


class ChatCreateWithMessage(ApiModel):
    """Body of ``POST /chats/create``."""

    first_message: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    system_prompt_mode: PromptMode = PromptMode.DEFAULT
    system_prompt: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class ChatUpdate(ApiModel):
    """Body of ``PATCH /chats/{id}``; only fields that are sent change."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    system_prompt: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    metadata: Optional[dict[str, Any]] = None

    @field_validator("title", "model", "temperature")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class ChatSummary(ApiModel):
    """Summary of a chat for list views."""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    message_count: int = 0


class ChatOut(ApiModel):
    """Chat metadata."""

    id: str
    title: str
    user_id: Optional[str] = None
    model: str
    temperature: float
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None
    meta: dict[str, Any] = Field(
        default_factory=dict, validation_alias="meta", serialization_alias="metadata"
    )
    created_at: datetime
    updated_at: datetime


class ChatDetail(ChatOut):
    """Chat with its messages in creation order."""

    messages: list[MessageOut] = Field(default_factory=list)


class ChatCreated(ApiModel):
    id: str
    title: str


class TitleResponse(ApiModel):
    title: str
