"""Chat management endpoints."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from omega.agent.titles import TitleGenerator
from omega.config import Settings
from omega.db.adapter import DatabaseAdapter
from omega.db.models import PLACEHOLDER_TITLE
from omega.dependencies import get_adapter, get_app_settings, get_title_generator
from omega.errors import ChatNotFoundError
from omega.models.chats import (
    ChatCreate,
    ChatCreated,
    ChatCreateWithMessage,
    ChatDetail,
    ChatOut,
    ChatSummary,
    ChatUpdate,
    TitleResponse,
)
from omega.prompts.loader import get_system_prompt

logger = logging.getLogger(__name__)
router = APIRouter()

TITLE_CONTEXT_MESSAGES = 5


@router.get("", response_model=list[ChatSummary])
async def list_chats(
    adapter: DatabaseAdapter = Depends(get_adapter),
) -> list[dict[str, Any]]:
    """Return every chat, most recently active first."""
    try:
        rows = await adapter.list_chats()
    except Exception as exc:
        logger.exception("Failed to fetch chats")
        raise HTTPException(status_code=500, detail="Failed to fetch chats") from exc

    return [
        {
            "id": chat.id,
            "title": chat.title,
            "created_at": chat.created_at,
            "updated_at": chat.updated_at,
            "message_count": count,
        }
        for chat, count in rows
    ]


@router.post("", response_model=ChatOut)
async def create_chat(
    body: Optional[ChatCreate] = Body(default=None),
    adapter: DatabaseAdapter = Depends(get_adapter),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """Create an empty chat; missing fields take the configured defaults."""
    body = body or ChatCreate()
    try:
        return await adapter.create_chat(
            title=body.title or PLACEHOLDER_TITLE,
            user_id=body.user_id,
            system_prompt=body.system_prompt,
            model=body.model or settings.default_model,
            temperature=(
                body.temperature
                if body.temperature is not None
                else settings.default_temperature
            ),
            max_tokens=body.max_tokens,
            meta=body.metadata or {},
        )
    except Exception as exc:
        logger.exception("Failed to create chat")
        raise HTTPException(status_code=500, detail="Failed to create chat") from exc


@router.post("/create", response_model=ChatCreated)
async def create_chat_with_message(
    body: ChatCreateWithMessage,
    adapter: DatabaseAdapter = Depends(get_adapter),
    titles: TitleGenerator = Depends(get_title_generator),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """Create a chat titled after its first message.

    The message itself is not stored; it arrives again with the first
    ``/chat`` request.
    """
    if body.first_message:
        title = await titles.from_first_message(body.first_message)
    else:
        title = PLACEHOLDER_TITLE

    try:
        chat = await adapter.create_chat(
            title=title,
            model=body.model or settings.default_model,
            temperature=(
                body.temperature
                if body.temperature is not None
                else settings.default_temperature
            ),
            system_prompt=body.system_prompt or get_system_prompt(body.system_prompt_mode),
            meta=body.metadata or {},
        )
    except Exception as exc:
        logger.exception("Failed to create chat")
        raise HTTPException(status_code=500, detail="Failed to create chat") from exc

    logger.info("Created chat %s with title: %s", chat.id, chat.title)
    return chat


@router.get("/{chat_id}", response_model=ChatDetail)
async def get_chat(
    chat_id: str,
    adapter: DatabaseAdapter = Depends(get_adapter),
) -> Any:
    """Return one chat with its messages in creation order."""
    chat = await adapter.get_chat_with_messages(chat_id)
    if chat is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat


@router.patch("/{chat_id}", response_model=ChatOut)
async def update_chat(
    chat_id: str,
    body: ChatUpdate,
    adapter: DatabaseAdapter = Depends(get_adapter),
) -> Any:
    """Change only the fields present in the body."""
    changes = body.model_dump(exclude_unset=True)
    if "metadata" in changes:
        changes["meta"] = changes.pop("metadata") or {}
    try:
        return await adapter.update_chat(chat_id, **changes)
    except ChatNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.detail) from exc


@router.delete("/{chat_id}")
async def delete_chat(
    chat_id: str,
    adapter: DatabaseAdapter = Depends(get_adapter),
) -> dict[str, bool]:
    """Delete a chat together with all of its messages."""
    try:
        await adapter.delete_chat(chat_id)
    except ChatNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.detail) from exc
    return {"success": True}


@router.post("/{chat_id}/generate-title", response_model=TitleResponse)
async def generate_title(
    chat_id: str,
    adapter: DatabaseAdapter = Depends(get_adapter),
    titles: TitleGenerator = Depends(get_title_generator),
) -> dict[str, str]:
    """Summarise the opening of a chat into a title and store it.

    A chat that already has a real title keeps it.
    """
    chat = await adapter.get_chat(chat_id)
    if chat is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    if chat.title and chat.title != PLACEHOLDER_TITLE:
        return {"title": chat.title}

    messages = await adapter.get_messages(chat_id, limit=TITLE_CONTEXT_MESSAGES)
    lines = [f"{m.role}: {m.content}" for m in messages if m.content]
    if not lines:
        return {"title": chat.title}

    try:
        title = await titles.from_conversation(lines)
        await adapter.update_chat(chat_id, title=title)
    except ChatNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.detail) from exc
    except Exception as exc:
        logger.exception("Failed to generate title for chat %s", chat_id)
        raise HTTPException(status_code=500, detail="Failed to generate title") from exc

    return {"title": title}
