"""Persistence adapter: CRUD for chats, messages, tools and preferences.

Every public method runs in its own session and transaction, so callers get
per-call atomicity and nothing more. ORM instances returned here are
detached (``expire_on_commit=False``) and safe to read after the call.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from omega.db.database import Database
from omega.db.models import Chat, Message, Tool, UserPreferences
from omega.errors import (
    ChatNotFoundError,
    ToolNameConflictError,
    ToolNotFoundError,
)

logger = logging.getLogger(__name__)

CHAT_FIELDS = frozenset(
    {"title", "user_id", "system_prompt", "model", "temperature", "max_tokens", "meta"}
)
TOOL_FIELDS = frozenset(
    {"name", "description", "parameters", "enabled", "category", "implementation"}
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _pick(values: dict[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    unknown = set(values) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {sorted(unknown)}")
    return dict(values)


class DatabaseAdapter:
    """Relational storage for the chat pipeline."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def _session(self):
        return self._database.session_factory()

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    async def create_chat(self, **values: Any) -> Chat:
        chat = Chat(**_pick(values, CHAT_FIELDS))
        async with self._session() as session, session.begin():
            session.add(chat)
        logger.debug("Created chat %s (%s)", chat.id, chat.title)
        return chat

    async def get_chat(self, chat_id: str) -> Chat | None:
        async with self._session() as session:
            return await session.get(Chat, chat_id)

    async def get_chat_with_messages(self, chat_id: str) -> Chat | None:
        """Return the chat with its messages eagerly loaded in creation order."""
        async with self._session() as session:
            return await session.scalar(
                select(Chat)
                .where(Chat.id == chat_id)
                .options(selectinload(Chat.messages))
            )

    async def update_chat(self, chat_id: str, **changes: Any) -> Chat:
        changes = _pick(changes, CHAT_FIELDS)
        async with self._session() as session, session.begin():
            chat = await session.get(Chat, chat_id)
            if chat is None:
                raise ChatNotFoundError(chat_id)
            for field, value in changes.items():
                setattr(chat, field, value)
        return chat

    async def delete_chat(self, chat_id: str) -> None:
        """Delete a chat and all of its messages in one transaction."""
        async with self._session() as session, session.begin():
            chat = await session.get(Chat, chat_id)
            if chat is None:
                raise ChatNotFoundError(chat_id)
            result = await session.execute(
                delete(Message).where(Message.chat_id == chat_id)
            )
            await session.delete(chat)
        logger.info("Deleted chat %s with %d messages", chat_id, result.rowcount)

    async def list_chats(
        self, user_id: str | None = None, limit: int | None = None
    ) -> list[tuple[Chat, int]]:
        """Return ``(chat, message_count)`` pairs, most recently updated first."""
        counts = (
            select(Message.chat_id, func.count(Message.id).label("message_count"))
            .group_by(Message.chat_id)
            .subquery()
        )
        stmt = (
            select(Chat, func.coalesce(counts.c.message_count, 0))
            .outerjoin(counts, counts.c.chat_id == Chat.id)
            .order_by(Chat.updated_at.desc())
        )
        if user_id is not None:
            stmt = stmt.where(Chat.user_id == user_id)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session() as session:
            rows = await session.execute(stmt)
            return [(chat, int(count)) for chat, count in rows.all()]

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def create_message(
        self,
        chat_id: str,
        role: str,
        content: str | None = None,
        tool_calls: list[dict[str, Any]] | None = None,
        tool_results: list[dict[str, Any]] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        """Append a message and bump the owning chat's ``updated_at``."""
        message = Message(
            chat_id=chat_id,
            role=role,
            content=content,
            tool_calls=tool_calls,
            tool_results=tool_results,
            meta=metadata or {},
        )
        async with self._session() as session, session.begin():
            bumped = await session.execute(
                update(Chat).where(Chat.id == chat_id).values(updated_at=_now())
            )
            if bumped.rowcount == 0:
                raise ChatNotFoundError(chat_id)
            session.add(message)
        return message

    async def get_messages(self, chat_id: str, limit: int = 100) -> list[Message]:
        async with self._session() as session:
            result = await session.scalars(
                select(Message)
                .where(Message.chat_id == chat_id)
                .order_by(Message.created_at)
                .limit(limit)
            )
            return list(result)

    async def update_message(self, message_id: str, **changes: Any) -> Message | None:
        """Apply a corrective edit to ``content`` or ``meta``."""
        changes = _pick(changes, frozenset({"content", "meta"}))
        async with self._session() as session, session.begin():
            message = await session.get(Message, message_id)
            if message is None:
                return None
            for field, value in changes.items():
                setattr(message, field, value)
        return message

    async def delete_message(self, message_id: str) -> bool:
        async with self._session() as session, session.begin():
            result = await session.execute(delete(Message).where(Message.id == message_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def create_tool(self, **values: Any) -> Tool:
        tool = Tool(**_pick(values, TOOL_FIELDS))
        try:
            async with self._session() as session, session.begin():
                session.add(tool)
        except IntegrityError as exc:
            raise ToolNameConflictError(values.get("name", "")) from exc
        logger.info("Created tool definition %s (%s)", tool.name, tool.category)
        return tool

    async def get_tool(self, tool_id: str) -> Tool | None:
        async with self._session() as session:
            return await session.get(Tool, tool_id)

    async def get_tool_by_name(self, name: str) -> Tool | None:
        async with self._session() as session:
            return await session.scalar(select(Tool).where(Tool.name == name))

    async def list_tools(
        self, category: str | None = None, *, include_disabled: bool = False
    ) -> list[Tool]:
        """List tools by category, or every enabled tool when no category is given."""
        stmt = select(Tool).order_by(Tool.name)
        if category is not None:
            stmt = stmt.where(Tool.category == category)
        elif not include_disabled:
            stmt = stmt.where(Tool.enabled.is_(True))
        async with self._session() as session:
            return list(await session.scalars(stmt))

    async def update_tool(self, tool_id: str, **changes: Any) -> Tool:
        changes = _pick(changes, TOOL_FIELDS)
        try:
            async with self._session() as session, session.begin():
                tool = await session.get(Tool, tool_id)
                if tool is None:
                    raise ToolNotFoundError(tool_id)
                for field, value in changes.items():
                    setattr(tool, field, value)
        except IntegrityError as exc:
            # Only the name carries a unique constraint
            if "name" not in changes:
                raise
            raise ToolNameConflictError(changes["name"]) from exc
        return tool

    async def delete_tool(self, tool_id: str) -> None:
        async with self._session() as session, session.begin():
            result = await session.execute(delete(Tool).where(Tool.id == tool_id))
        if result.rowcount == 0:
            raise ToolNotFoundError(tool_id)

    async def ensure_tools(self, definitions: list[dict[str, Any]]) -> int:
        """Insert any of ``definitions`` whose name is not persisted yet.

        Existing rows are left untouched so administrative edits survive
        restarts. Returns the number of rows inserted.
        """
        names = [d["name"] for d in definitions]
        async with self._session() as session, session.begin():
            existing = set(
                await session.scalars(select(Tool.name).where(Tool.name.in_(names)))
            )
            missing = [Tool(**d) for d in definitions if d["name"] not in existing]
            session.add_all(missing)
        return len(missing)

    # ------------------------------------------------------------------
    # User preferences
    # ------------------------------------------------------------------

    async def get_user_preferences(self, user_id: str) -> UserPreferences | None:
        async with self._session() as session:
            return await session.scalar(
                select(UserPreferences).where(UserPreferences.user_id == user_id)
            )

    async def update_user_preferences(
        self, user_id: str, preferences: dict[str, Any]
    ) -> UserPreferences:
        """Upsert the preference payload for ``user_id``."""
        async with self._session() as session, session.begin():
            record = await session.scalar(
                select(UserPreferences).where(UserPreferences.user_id == user_id)
            )
            if record is None:
                record = UserPreferences(user_id=user_id, preferences=preferences)
                session.add(record)
            else:
                record.preferences = preferences
        return record
