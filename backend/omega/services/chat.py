"""Chat request handling: session resolution, agent run and step persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, SystemMessage

from omega.agent import stream_protocol as protocol
from omega.agent.graph import (
    AssistantAgent,
    StepFinished,
    StepRecord,
    StepStarted,
    TextDelta,
    ToolCallEvent,
    ToolResultEvent,
)
from omega.agent.messages import request_message_text, to_langchain_messages
from omega.agent.titles import TitleGenerator
from omega.agent.tools.registry import DYNAMIC_CATEGORY, ToolRegistry
from omega.config import Settings
from omega.db.adapter import DatabaseAdapter
from omega.db.models import Chat
from omega.errors import ChatNotFoundError, ToolPreconditionError
from omega.models.messages import AdvancedChatRequest, ChatRequest, MessageRole
from omega.prompts.loader import get_system_prompt

logger = logging.getLogger(__name__)

ADVANCED_TITLE = "Advanced Chat"
STREAM_ERROR_MESSAGE = "An error occurred while generating the response."


@dataclass
class PreparedChat:
    """A resolved chat plus the agent and prompt for one request."""

    chat: Chat
    agent: AssistantAgent
    messages: list[BaseMessage]
    tool_names: list[str]


class ChatService:
    """Turns a chat request into a persisted, streamed exchange."""

    def __init__(
        self,
        adapter: DatabaseAdapter,
        registry: ToolRegistry,
        model_factory: Callable[..., BaseChatModel],
        titles: TitleGenerator,
        settings: Settings,
    ) -> None:
        self._adapter = adapter
        self._registry = registry
        self._model_factory = model_factory
        self._titles = titles
        self._settings = settings

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def prepare(self, request: ChatRequest) -> PreparedChat:
        """Resolve or create the chat, save the user turn, build the agent.

        Raises:
            ChatNotFoundError: If ``request.chat_id`` names no chat.
        """
        advanced = isinstance(request, AdvancedChatRequest)
        raw_messages = [
            m.model_dump(by_alias=True, exclude_none=True) for m in request.messages
        ]

        if request.chat_id:
            chat = await self._adapter.get_chat(request.chat_id)
            if chat is None:
                raise ChatNotFoundError(request.chat_id)
        else:
            chat = await self._create_chat(request, raw_messages, advanced)

        model = request.model or chat.model or self._settings.default_model
        temperature = (
            request.temperature if request.temperature is not None else chat.temperature
        )
        max_tokens = request.max_tokens or chat.max_tokens

        if raw_messages and raw_messages[-1].get("role") == MessageRole.USER.value:
            await self._adapter.create_message(
                chat.id,
                MessageRole.USER.value,
                content=request_message_text(raw_messages[-1]),
                metadata=request.user_data,
            )

        tools = await self._select_tools(
            request.enabled_tools,
            advanced=advanced and request.enable_dynamic_tools,
        )
        system_prompt = chat.system_prompt or get_system_prompt(request.system_prompt_mode)
        history: list[BaseMessage] = [SystemMessage(content=system_prompt)]
        history.extend(to_langchain_messages(raw_messages))

        max_steps = (
            self._settings.advanced_max_steps if advanced else self._settings.max_steps
        )
        agent = AssistantAgent(
            self._model_factory(model, temperature, max_tokens),
            tools,
            max_steps=max_steps,
        )
        logger.info(
            "Chat %s: model=%s tools=%s max_steps=%d",
            chat.id,
            model,
            [t.name for t in tools],
            max_steps,
        )
        return PreparedChat(
            chat=chat,
            agent=agent,
            messages=history,
            tool_names=[t.name for t in tools],
        )

    async def stream(self, prepared: PreparedChat) -> AsyncIterator[str]:
        """Yield protocol lines, persisting each finished step as it completes.

        Errors after the first byte cannot change the status code, so they
        are logged and reported as a final error part.
        """
        chat_id = prepared.chat.id
        finish_reason = "stop"
        usage = {"promptTokens": 0, "completionTokens": 0}

        try:
            async for event in prepared.agent.stream(prepared.messages):
                if isinstance(event, StepStarted):
                    yield protocol.start_step(event.message_id)
                elif isinstance(event, TextDelta):
                    yield protocol.text(event.text)
                elif isinstance(event, ToolCallEvent):
                    call = event.call
                    yield protocol.tool_call(call["toolCallId"], call["toolName"], call["args"])
                elif isinstance(event, ToolResultEvent):
                    result = event.result
                    yield protocol.tool_result(result["toolCallId"], result["result"])
                elif isinstance(event, StepFinished):
                    step = event.step
                    await self._persist_step(chat_id, step)
                    finish_reason = step.finish_reason
                    for key in usage:
                        usage[key] += step.usage.get(key, 0)
                    yield protocol.finish_step(step.finish_reason, step.usage, event.is_continued)

            yield protocol.finish_message(finish_reason, usage)

        except ToolPreconditionError as exc:
            logger.warning("Chat %s aborted by tool precondition: %s", chat_id, exc)
            yield protocol.error(str(exc))
        except Exception:
            logger.exception("Chat stream failed for chat %s", chat_id)
            yield protocol.error(STREAM_ERROR_MESSAGE)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _create_chat(
        self,
        request: ChatRequest,
        raw_messages: list[dict[str, Any]],
        advanced: bool,
    ) -> Chat:
        if request.title:
            title = request.title
        elif advanced:
            title = ADVANCED_TITLE
        else:
            first_text = request_message_text(raw_messages[-1]) if raw_messages else ""
            title = await self._titles.from_first_message(first_text)

        metadata = dict(request.user_data or {})
        if advanced:
            metadata["advanced"] = True

        chat = await self._adapter.create_chat(
            title=title,
            model=request.model or self._settings.default_model,
            temperature=(
                request.temperature
                if request.temperature is not None
                else self._settings.default_temperature
            ),
            max_tokens=request.max_tokens,
            system_prompt=get_system_prompt(request.system_prompt_mode),
            meta=metadata,
        )
        logger.info("Created new chat %s with title: %s", chat.id, title)
        return chat

    async def _select_tools(self, allowed: list[str] | None, *, advanced: bool):
        definitions = await self._adapter.list_tools(include_disabled=True)
        disabled = [d.name for d in definitions if not d.enabled]
        dynamic = [
            d for d in definitions if d.category == DYNAMIC_CATEGORY and d.enabled
        ]
        return self._registry.select(
            allowed, advanced=advanced, disabled=disabled, dynamic=dynamic
        )

    async def _persist_step(self, chat_id: str, step: StepRecord) -> None:
        if not step.has_output:
            return
        await self._adapter.create_message(
            chat_id,
            MessageRole.ASSISTANT.value,
            content=step.text,
            tool_calls=step.tool_calls or None,
            tool_results=step.tool_results or None,
            metadata={"usage": step.usage, "finishReason": step.finish_reason},
        )
