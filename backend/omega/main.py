"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from langchain_core.language_models import BaseChatModel

from omega.agent.llm import ChatModelFactory
from omega.agent.titles import TitleGenerator
from omega.agent.tools import KnowledgeBase, build_tool_registry
from omega.api.router import api_router
from omega.config import Settings, settings as default_settings
from omega.db.adapter import DatabaseAdapter
from omega.db.database import Database
from omega.services.chat import ChatService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    logger.info(
        "Starting %s backend (%s)...",
        app.state.settings.app_name,
        app.state.settings.environment,
    )

    database: Database = app.state.database
    await database.initialize()
    logger.info("Database initialized successfully")

    # Persist a definition for every registered tool so it can be administered
    seeded = await app.state.adapter.ensure_tools(app.state.tool_registry.definitions())
    if seeded:
        logger.info("Seeded %d tool definitions", seeded)

    yield

    await database.close()
    logger.info("%s backend shut down cleanly", app.state.settings.app_name)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies as 400 with the validation details."""
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    model_factory: Optional[Callable[..., BaseChatModel]] = None,
) -> FastAPI:
    """Build an application instance with its own database and tool catalog.

    ``model_factory`` replaces the provider-backed chat model factory, which
    is how tests run the pipeline against scripted models.
    """
    settings = settings or default_settings

    app = FastAPI(
        title="Omega Chat API",
        description="Conversational assistant with persistent chats and tool calling",
        version="0.1.0",
        lifespan=lifespan,
    )

    database = Database(settings.database_url, echo=settings.database_echo)
    adapter = DatabaseAdapter(database)
    registry = build_tool_registry(settings, adapter, KnowledgeBase())
    factory = model_factory or ChatModelFactory(settings)
    titles = TitleGenerator(factory, model=settings.title_model)

    app.state.settings = settings
    app.state.database = database
    app.state.adapter = adapter
    app.state.tool_registry = registry
    app.state.title_generator = titles
    app.state.chat_service = ChatService(adapter, registry, factory, titles, settings)

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            settings.frontend_url,
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Chat-Id"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Mount API routes
    app.include_router(api_router, prefix="/api")
    return app


# Configure logging
logging.basicConfig(
    level=getattr(logging, default_settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = create_app()
