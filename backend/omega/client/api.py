"""Async HTTP client for the chat API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from omega.agent.stream_protocol import CHAT_ID_HEADER, parse_line
from omega.errors import ApiError

logger = logging.getLogger(__name__)

PartCallback = Callable[[str, Any], None]


@dataclass
class ChatReply:
    """The assistant side of one streamed exchange, folded from its parts."""

    chat_id: str
    text: str = ""
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    tool_results: list[dict[str, Any]] = field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: dict[str, int] = field(default_factory=dict)
    error: Optional[str] = None

    def apply(self, name: str, value: Any) -> None:
        if name == "text":
            self.text += value
        elif name == "tool_call":
            self.tool_calls.append(value)
        elif name == "tool_result":
            self.tool_results.append(value)
        elif name == "finish_message":
            self.finish_reason = value.get("finishReason")
            self.usage = value.get("usage") or {}
        elif name == "error":
            self.error = value

    def tool_invocations(self) -> list[dict[str, Any]]:
        """Pair each tool call with its result in the UI message shape."""
        results = {r["toolCallId"]: r.get("result") for r in self.tool_results}
        invocations = []
        for call in self.tool_calls:
            invocation = {**call, "state": "call"}
            if call["toolCallId"] in results:
                invocation.update(state="result", result=results[call["toolCallId"]])
            invocations.append(invocation)
        return invocations


class OmegaClient:
    """Thin wrapper over ``httpx.AsyncClient`` for the ``/api`` routes.

    Usage::

        async with OmegaClient("http://localhost:8000/api") as client:
            chats = await client.list_chats()
    """

    def __init__(
        self,
        base_url: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 60.0,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), transport=transport, timeout=timeout
        )

    async def __aenter__(self) -> "OmegaClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    async def list_chats(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/chats")

    async def get_chat(self, chat_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/chats/{chat_id}")

    async def create_chat(self, title: Optional[str] = None, **fields: Any) -> dict[str, Any]:
        body = {"title": title, **fields} if title else dict(fields)
        return await self._request("POST", "/chats", json=body)

    async def update_chat(self, chat_id: str, **changes: Any) -> dict[str, Any]:
        return await self._request("PATCH", f"/chats/{chat_id}", json=changes)

    async def delete_chat(self, chat_id: str) -> None:
        await self._request("DELETE", f"/chats/{chat_id}")

    async def generate_title(self, chat_id: str) -> str:
        data = await self._request("POST", f"/chats/{chat_id}/generate-title")
        return data["title"]

    # ------------------------------------------------------------------
    # Streaming chat
    # ------------------------------------------------------------------

    async def send_chat(
        self,
        messages: list[dict[str, Any]],
        *,
        chat_id: Optional[str] = None,
        advanced: bool = False,
        on_part: Optional[PartCallback] = None,
        **options: Any,
    ) -> ChatReply:
        """POST an exchange and fold the data stream into a :class:`ChatReply`.

        ``on_part`` sees every decoded part as it arrives.
        """
        body: dict[str, Any] = {"messages": messages, **options}
        if chat_id:
            body["chatId"] = chat_id
        path = "/chat/advanced" if advanced else "/chat"

        async with self._http.stream("POST", path, json=body) as response:
            if response.is_error:
                await response.aread()
                raise ApiError(response.status_code, _error_message(response))

            reply = ChatReply(chat_id=response.headers.get(CHAT_ID_HEADER, chat_id or ""))
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                name, value = parse_line(line)
                reply.apply(name, value)
                if on_part is not None:
                    on_part(name, value)

        if reply.error:
            logger.warning("Chat %s stream ended with error: %s", reply.chat_id, reply.error)
        return reply

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._http.request(method, path, **kwargs)
        if response.is_error:
            raise ApiError(response.status_code, _error_message(response))
        return response.json()


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        return str(data.get("detail") or data.get("error") or data)
    return str(data)
