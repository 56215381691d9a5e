"""Streaming chat endpoints.

Both routes answer with the line-oriented data stream understood by the
web client (see :mod:`omega.agent.stream_protocol`). The id of the chat
the exchange belongs to, possibly just created, is sent in ``X-Chat-Id``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse

from omega.agent.stream_protocol import CHAT_ID_HEADER, STREAM_HEADER, STREAM_VERSION
from omega.errors import ChatNotFoundError
from omega.dependencies import get_chat_service
from omega.models.messages import AdvancedChatRequest, ChatRequest
from omega.services.chat import ChatService

logger = logging.getLogger(__name__)
router = APIRouter()


async def _respond(service: ChatService, request: ChatRequest) -> Response:
    try:
        prepared = await service.prepare(request)
    except ChatNotFoundError:
        return PlainTextResponse("Chat not found", status_code=404)
    except Exception:
        logger.exception("Chat request failed before streaming")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return StreamingResponse(
        service.stream(prepared),
        media_type="text/plain; charset=utf-8",
        headers={
            CHAT_ID_HEADER: prepared.chat.id,
            STREAM_HEADER: STREAM_VERSION,
        },
    )


@router.post("")
async def chat(
    request: ChatRequest,
    service: ChatService = Depends(get_chat_service),
) -> Response:
    """Run one exchange with the base tool set."""
    return await _respond(service, request)


@router.post("/advanced")
async def advanced_chat(
    request: AdvancedChatRequest,
    service: ChatService = Depends(get_chat_service),
) -> Response:
    """Run one exchange with the advanced tools and a larger step budget."""
    return await _respond(service, request)
