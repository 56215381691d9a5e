"""Dependency injection providers for FastAPI.

Every collaborator is built once per application in ``create_app`` and
kept on ``app.state``; these providers only hand them to the routes.
"""

from fastapi import Request

from omega.agent.titles import TitleGenerator
from omega.config import Settings
from omega.db.adapter import DatabaseAdapter
from omega.db.database import Database
from omega.services.chat import ChatService


def get_app_settings(request: Request) -> Settings:
    """Return the settings the running application was built with."""
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_adapter(request: Request) -> DatabaseAdapter:
    return request.app.state.adapter


def get_title_generator(request: Request) -> TitleGenerator:
    return request.app.state.title_generator


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service
