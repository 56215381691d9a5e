"""Short conversation titles generated by the completion model."""

from __future__ import annotations

import logging
from typing import Callable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from omega.agent.messages import message_text
from omega.db.models import PLACEHOLDER_TITLE

logger = logging.getLogger(__name__)

FIRST_MESSAGE_PROMPT = (
    "Generate a short, descriptive title (max 40 chars) for a conversation that "
    "starts with this message. Return only the title, no quotes or punctuation. "
    "Be creative and specific."
)

CONVERSATION_PROMPT = (
    "Generate a short, descriptive title (max 50 chars) for this conversation. "
    "Return only the title, no quotes or punctuation."
)

FIRST_MESSAGE_LIMIT = 40
CONVERSATION_LIMIT = 50
PROMPT_INPUT_LIMIT = 500


def truncate_title(text: str, limit: int = FIRST_MESSAGE_LIMIT) -> str:
    """Fallback title: the first ``limit`` characters, with an ellipsis if cut."""
    text = " ".join(text.split())
    if not text:
        return PLACEHOLDER_TITLE
    return text[:limit] + ("..." if len(text) > limit else "")


def _clean(raw: str) -> str:
    return raw.strip().strip("\"'").strip()


class TitleGenerator:
    """Ask a chat model for a title, falling back to truncation on failure."""

    def __init__(
        self,
        model_factory: Callable[..., BaseChatModel],
        model: str = "gpt-4o",
    ) -> None:
        self._model_factory = model_factory
        self._model = model

    async def _complete(self, system: str, text: str, temperature: float) -> str:
        llm = self._model_factory(self._model, temperature, 20)
        response = await llm.ainvoke(
            [SystemMessage(content=system), HumanMessage(content=text)]
        )
        return _clean(message_text(response.content))

    async def from_first_message(self, text: str) -> str:
        """Title for a chat that starts with ``text``; never empty."""
        if not text.strip():
            return PLACEHOLDER_TITLE
        try:
            title = await self._complete(
                FIRST_MESSAGE_PROMPT, text[:PROMPT_INPUT_LIMIT], 0.7
            )
        except Exception:
            logger.exception("Failed to generate title")
            return truncate_title(text)
        return title[:FIRST_MESSAGE_LIMIT] or truncate_title(text)

    async def from_conversation(self, lines: list[str]) -> str:
        """Title summarising the first few messages of a conversation.

        Errors propagate; the caller decides how to report them.
        """
        transcript = "\n".join(lines)[:PROMPT_INPUT_LIMIT]
        title = await self._complete(CONVERSATION_PROMPT, transcript, 0.5)
        return title[:CONVERSATION_LIMIT] or truncate_title(transcript, CONVERSATION_LIMIT)
