"""Central API router that aggregates all route modules."""

from fastapi import APIRouter

from omega.api.chat import router as chat_router
from omega.api.chats import router as chats_router
from omega.api.health import router as health_router
from omega.api.preferences import router as preferences_router
from omega.api.tools import router as tools_router

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(chat_router, prefix="/chat", tags=["chat"])
api_router.include_router(chats_router, prefix="/chats", tags=["chats"])
api_router.include_router(tools_router, prefix="/tools", tags=["tools"])
api_router.include_router(preferences_router, prefix="/preferences", tags=["preferences"])
