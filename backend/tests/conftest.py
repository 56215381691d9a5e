"""Shared test fixtures for the chat backend."""

from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatResult

from omega.agent.stream_protocol import parse_stream
from omega.config import Settings
from omega.db.adapter import DatabaseAdapter
from omega.db.database import Database
from omega.main import create_app

CHAT_MODEL = "test-model"
TITLE_MODEL = "title-model"


class Script:
    """Queue of canned replies plus a log of the prompts that consumed them."""

    def __init__(self) -> None:
        self.replies: list[AIMessage] = []
        self.prompts: list[list[BaseMessage]] = []

    def add(self, *replies: AIMessage | str) -> None:
        for reply in replies:
            self.replies.append(AIMessage(content=reply) if isinstance(reply, str) else reply)

    def pop(self, messages: list[BaseMessage]) -> AIMessage:
        self.prompts.append(list(messages))
        if not self.replies:
            raise RuntimeError("No scripted reply left")
        return self.replies.pop(0)


class ScriptedChatModel(BaseChatModel):
    """Chat model that answers from a :class:`Script`."""

    script: Any
    model_name: str = CHAT_MODEL

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        return ChatResult(generations=[ChatGeneration(message=self.script.pop(messages))])

    def bind_tools(self, tools, **kwargs):
        return self


class ScriptedModelFactory:
    """Stand-in for ``ChatModelFactory`` keeping chat and title replies apart."""

    def __init__(self) -> None:
        self.chat = Script()
        self.titles = Script()
        self.requests: list[tuple[str, float, int | None]] = []

    def __call__(self, model: str, temperature: float = 0.7, max_tokens=None) -> BaseChatModel:
        self.requests.append((model, temperature, max_tokens))
        script = self.titles if model == TITLE_MODEL else self.chat
        return ScriptedChatModel(script=script, model_name=model)


def tool_call(name: str, args: dict[str, Any], call_id: str = "call_1") -> AIMessage:
    """Assistant reply that asks for one tool call."""
    return AIMessage(
        content="",
        tool_calls=[{"name": name, "args": args, "id": call_id, "type": "tool_call"}],
    )


def stream_parts(body: str) -> list[tuple[str, Any]]:
    return list(parse_stream(body.splitlines()))


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        default_model=CHAT_MODEL,
        title_model=TITLE_MODEL,
        tavily_api_key="",
        max_steps=5,
        advanced_max_steps=10,
    )


@pytest.fixture
def models() -> ScriptedModelFactory:
    return ScriptedModelFactory()


@pytest_asyncio.fixture
async def app(settings: Settings, models: ScriptedModelFactory) -> AsyncGenerator[FastAPI, None]:
    """Application with a fresh SQLite database, started and shut down around the test."""
    application = create_app(settings, model_factory=models)
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def adapter(app: FastAPI) -> DatabaseAdapter:
    return app.state.adapter


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Standalone database for adapter tests."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'adapter.db'}")
    await db.initialize()
    yield db
    await db.close()
