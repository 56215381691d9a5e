"""Message models for the chat endpoints."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, Field

from omega.models.base import ApiModel
from omega.prompts.loader import PromptMode


class MessageRole(str, Enum):
    """Message sender role."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class IncomingMessage(ApiModel):
    """One message of the history sent by the client."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    role: MessageRole
    content: Optional[str | list[Any]] = None
    parts: Optional[list[Any]] = None
    tool_invocations: Optional[list[dict[str, Any]]] = None


class ChatRequest(ApiModel):
    """Body of ``POST /chat``."""

    messages: list[IncomingMessage] = Field(default_factory=list)
    chat_id: Optional[str] = None
    title: Optional[str] = Field(default=None, max_length=255)
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    system_prompt_mode: PromptMode = PromptMode.DEFAULT
    enabled_tools: Optional[list[str]] = None
    user_data: Optional[dict[str, Any]] = None


class AdvancedChatRequest(ChatRequest):
    """Body of ``POST /chat/advanced``."""

    enable_dynamic_tools: bool = False


class MessageOut(ApiModel):
    """Persisted chat message."""

    id: str
    chat_id: str
    role: MessageRole
    content: Optional[str] = None
    tool_calls: Optional[list[dict[str, Any]]] = None
    tool_results: Optional[list[dict[str, Any]]] = None
    meta: dict[str, Any] = Field(
        default_factory=dict, validation_alias="meta", serialization_alias="metadata"
    )
    created_at: datetime
