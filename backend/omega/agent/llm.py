"""Chat model construction for the completion providers."""

from __future__ import annotations

import logging

from langchain_core.language_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from omega.config import Settings

logger = logging.getLogger(__name__)


class ChatModelFactory:
    """Build a streaming LangChain chat model for a model name.

    ``gemini-*`` models go to Google Generative AI; everything else is
    treated as an OpenAI model name.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def __call__(
        self,
        model: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> BaseChatModel:
        if model.startswith("gemini"):
            logger.debug("Building Gemini model %s", model)
            return ChatGoogleGenerativeAI(
                model=model,
                google_api_key=self._settings.google_api_key or None,
                temperature=temperature,
                max_output_tokens=max_tokens,
            )

        logger.debug("Building OpenAI model %s", model)
        return ChatOpenAI(
            model=model,
            api_key=self._settings.openai_api_key or None,
            temperature=temperature,
            max_tokens=max_tokens,
            streaming=True,
            stream_usage=True,
        )
