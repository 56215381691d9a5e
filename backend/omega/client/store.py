"""In-memory chat state for one client, kept in step with the server by polling.

Chats are the summary dicts served by ``GET /chats`` (``id``, ``title``,
``createdAt``, ``updatedAt``, ``messageCount``); messages are UI message
dicts (``id``, ``role``, ``content``, optional ``toolInvocations``).

Local mutations are applied optimistically and remembered for
``grace_period`` seconds. A polled snapshot that contradicts a mutation
younger than that leaves the local version in place; after it, the
server's version wins.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

Listener = Callable[["ChatStore"], None]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ChatStore:
    """Explicitly constructed state container; one per client session."""

    def __init__(
        self,
        *,
        grace_period: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.current_chat_id: Optional[str] = None
        self.chats: list[dict[str, Any]] = []
        self.active_messages: list[dict[str, Any]] = []
        self.is_creating_chat: bool = False

        self._grace_period = grace_period
        self._clock = clock
        self._listeners: list[Listener] = []
        # chat id -> time of the last local mutation
        self._pending: dict[str, float] = {}
        self._deleted: set[str] = set()

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _touch(self, chat_id: str) -> None:
        self._pending[chat_id] = self._clock()

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    def set_current_chat_id(self, chat_id: Optional[str]) -> None:
        self.current_chat_id = chat_id
        self._notify()

    def set_chats(self, chats: list[dict[str, Any]]) -> None:
        """Replace the list outright, forgetting pending mutations."""
        self.chats = [dict(c) for c in chats]
        self._pending.clear()
        self._deleted.clear()
        self._notify()

    def add_chat(self, chat: dict[str, Any]) -> None:
        self.chats = [dict(chat)] + [c for c in self.chats if c["id"] != chat["id"]]
        self._deleted.discard(chat["id"])
        self._touch(chat["id"])
        self._notify()

    def update_chat(self, chat_id: str, updates: dict[str, Any], *, local: bool = True) -> None:
        """Merge ``updates`` into a chat; ``local=False`` for data read from the server."""
        self.chats = [
            {**chat, **updates} if chat["id"] == chat_id else chat for chat in self.chats
        ]
        if local:
            self._touch(chat_id)
        self._notify()

    def delete_chat(self, chat_id: str) -> None:
        self.chats = [c for c in self.chats if c["id"] != chat_id]
        if self.current_chat_id == chat_id:
            self.current_chat_id = None
        self._deleted.add(chat_id)
        self._touch(chat_id)
        self._notify()

    def increment_message_count(self, chat_id: str) -> None:
        self.chats = [
            {
                **chat,
                "messageCount": chat.get("messageCount", 0) + 1,
                "updatedAt": _now_iso(),
            }
            if chat["id"] == chat_id
            else chat
            for chat in self.chats
        ]
        self._touch(chat_id)
        self._notify()

    def set_is_creating_chat(self, is_creating: bool) -> None:
        self.is_creating_chat = is_creating
        self._notify()

    def get_chat_by_id(self, chat_id: str) -> Optional[dict[str, Any]]:
        return next((c for c in self.chats if c["id"] == chat_id), None)

    def get_current_chat(self) -> Optional[dict[str, Any]]:
        if self.current_chat_id is None:
            return None
        return self.get_chat_by_id(self.current_chat_id)

    # ------------------------------------------------------------------
    # Messages of the open chat
    # ------------------------------------------------------------------

    def set_active_messages(self, messages: list[dict[str, Any]]) -> None:
        self.active_messages = [dict(m) for m in messages]
        self._notify()

    def add_message(self, message: dict[str, Any]) -> None:
        self.active_messages = self.active_messages + [dict(message)]
        self._notify()

    def update_message(self, message_id: str, updates: dict[str, Any]) -> None:
        self.active_messages = [
            {**m, **updates} if m.get("id") == message_id else m
            for m in self.active_messages
        ]
        self._notify()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def apply_snapshot(self, chats: list[dict[str, Any]]) -> None:
        """Merge a polled chat list into local state."""
        now = self._clock()
        self._pending = {
            chat_id: at
            for chat_id, at in self._pending.items()
            if now - at < self._grace_period
        }
        self._deleted &= set(self._pending)

        local = {c["id"]: c for c in self.chats}
        merged: list[dict[str, Any]] = []
        for chat in chats:
            chat_id = chat["id"]
            if chat_id in self._deleted:
                continue
            if chat_id in self._pending and chat_id in local:
                merged.append(local[chat_id])
            else:
                merged.append(dict(chat))

        # Chats added locally that the server has not listed yet
        served = {c["id"] for c in chats}
        fresh = [
            c for c in self.chats if c["id"] in self._pending and c["id"] not in served
        ]

        self.chats = fresh + merged
        if self.current_chat_id is not None and self.get_chat_by_id(self.current_chat_id) is None:
            if self.current_chat_id not in self._pending:
                self.current_chat_id = None
        self._notify()
