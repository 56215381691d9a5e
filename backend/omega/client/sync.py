"""Keeps a :class:`ChatStore` in step with the server."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import httpx

from omega.client.api import ChatReply, OmegaClient, PartCallback
from omega.client.store import ChatStore
from omega.config import Settings
from omega.errors import ApiError

logger = logging.getLogger(__name__)

SUMMARY_FIELDS = ("id", "title", "createdAt", "updatedAt")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def ui_message(message: dict[str, Any]) -> dict[str, Any]:
    """Convert a persisted message into the UI message shape."""
    converted: dict[str, Any] = {
        "id": message["id"],
        "role": message["role"],
        "content": message.get("content") or "",
        "createdAt": message.get("createdAt"),
    }
    if message.get("toolCalls"):
        converted["toolCalls"] = message["toolCalls"]
    if message.get("toolResults"):
        converted["toolResults"] = message["toolResults"]
        converted["toolInvocations"] = [
            {**result, "state": "result"} for result in message["toolResults"]
        ]
    return converted


def _request_message(message: dict[str, Any]) -> dict[str, Any]:
    payload = {"role": message["role"], "content": message.get("content") or ""}
    if message.get("toolInvocations"):
        payload["toolInvocations"] = message["toolInvocations"]
    return payload


class ChatSync:
    """Drives an :class:`OmegaClient` and mirrors the results into a store.

    Lifecycle::

        sync = ChatSync(client, store, poll_interval=5.0)
        await sync.start()    # begin polling the chat list
        ...
        await sync.stop()
    """

    def __init__(
        self,
        client: OmegaClient,
        store: ChatStore,
        *,
        poll_interval: float = 5.0,
    ) -> None:
        self.client = client
        self.store = store
        self.poll_interval = poll_interval
        self._task: Optional[asyncio.Task[None]] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatSync":
        """Build a sync with its own client and store from configuration."""
        return cls(
            OmegaClient(settings.api_base_url),
            ChatStore(grace_period=settings.poll_interval),
            poll_interval=settings.poll_interval,
        )

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            logger.warning("Chat sync already running - skipping")
            return
        self._task = asyncio.create_task(self._poll())
        logger.info("Chat sync started (every %.1fs)", self.poll_interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Chat sync stopped")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _poll(self) -> None:
        while True:
            try:
                await self.refresh_chats()
            except (httpx.HTTPError, ApiError) as exc:
                logger.warning("Chat list refresh failed: %s", exc)
            except Exception:
                logger.exception("Unexpected error while refreshing chats")
            await asyncio.sleep(self.poll_interval)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def refresh_chats(self) -> list[dict[str, Any]]:
        chats = await self.client.list_chats()
        self.store.apply_snapshot(chats)
        return self.store.chats

    async def load_chat(self, chat_id: str) -> dict[str, Any]:
        """Open a chat: fetch it with its messages and make it current."""
        chat = await self.client.get_chat(chat_id)
        messages = [ui_message(m) for m in chat.get("messages", [])]
        self.store.update_chat(
            chat_id,
            {**{k: chat[k] for k in SUMMARY_FIELDS if k in chat}, "messageCount": len(messages)},
            local=False,
        )
        self.store.set_current_chat_id(chat_id)
        self.store.set_active_messages(messages)
        return chat

    async def create_chat(self, title: Optional[str] = None, **fields: Any) -> dict[str, Any]:
        self.store.set_is_creating_chat(True)
        try:
            chat = await self.client.create_chat(title, **fields)
            self.store.add_chat(
                {**{k: chat[k] for k in SUMMARY_FIELDS}, "messageCount": 0}
            )
            self.store.set_current_chat_id(chat["id"])
            self.store.set_active_messages([])
            return chat
        except (httpx.HTTPError, ApiError):
            logger.exception("Failed to create chat")
            raise
        finally:
            self.store.set_is_creating_chat(False)

    async def delete_chat(self, chat_id: str) -> None:
        await self.client.delete_chat(chat_id)
        self.store.delete_chat(chat_id)
        if self.store.current_chat_id is None:
            self.store.set_active_messages([])

    async def send_message(
        self,
        content: str,
        *,
        advanced: bool = False,
        on_part: Optional[PartCallback] = None,
        **options: Any,
    ) -> dict[str, Any]:
        """Send a user message in the current chat, starting one if needed.

        The user message is shown immediately; the assistant message is
        appended once the stream completes. Returns the assistant message.
        """
        chat_id = self.store.current_chat_id
        user_message = {
            "id": f"local-{uuid4().hex}",
            "role": "user",
            "content": content,
            "createdAt": _now_iso(),
        }
        self.store.add_message(user_message)
        if chat_id:
            self.store.increment_message_count(chat_id)

        history = [_request_message(m) for m in self.store.active_messages]
        reply: ChatReply = await self.client.send_chat(
            history, chat_id=chat_id, advanced=advanced, on_part=on_part, **options
        )

        if not chat_id:
            self.store.set_current_chat_id(reply.chat_id)
            await self.refresh_chats()

        assistant_message = {
            "id": f"local-{uuid4().hex}",
            "role": "assistant",
            "content": reply.text,
            "createdAt": _now_iso(),
        }
        invocations = reply.tool_invocations()
        if invocations:
            assistant_message["toolInvocations"] = invocations
        if reply.error:
            assistant_message["error"] = reply.error
        self.store.add_message(assistant_message)
        if chat_id:
            self.store.increment_message_count(chat_id)
        return assistant_message
