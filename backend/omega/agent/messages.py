"""Conversion between chat-request messages and LangChain messages.

Incoming messages follow the UI message shape::

    {
        "role": "assistant",
        "content": "Let me check.",
        "parts": [{"type": "text", "text": "Let me check."}],
        "toolInvocations": [
            {"toolCallId": "call_1", "toolName": "weather",
             "args": {"city": "Paris"}, "state": "result", "result": {...}}
        ]
    }

``content`` may be a string or a list of parts; ``parts`` is used when
``content`` is missing.
"""

from __future__ import annotations

import json
from typing import Any

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)


def message_text(content: Any) -> str:
    """Flatten string or part-list content into plain text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces = []
        for part in content:
            if isinstance(part, str):
                pieces.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                pieces.append(part.get("text", ""))
        return "".join(pieces)
    return str(content)


def request_message_text(message: dict[str, Any]) -> str:
    """Text of a request message, from ``content`` or its ``parts``."""
    text = message_text(message.get("content"))
    if not text and message.get("parts"):
        text = message_text(message["parts"])
    return text


def _result_content(result: Any) -> str:
    return result if isinstance(result, str) else json.dumps(result, default=str)


def to_langchain_messages(messages: list[dict[str, Any]]) -> list[BaseMessage]:
    """Convert request messages to the shape the chat model expects."""
    converted: list[BaseMessage] = []
    for message in messages:
        role = message.get("role", "user")
        text = request_message_text(message)

        if role == "user":
            converted.append(HumanMessage(content=text))
        elif role == "system":
            converted.append(SystemMessage(content=text))
        elif role == "assistant":
            invocations = [
                inv
                for inv in message.get("toolInvocations") or []
                if inv.get("state") == "result"
            ]
            tool_calls = [
                {
                    "id": inv["toolCallId"],
                    "name": inv["toolName"],
                    "args": inv.get("args") or {},
                }
                for inv in invocations
            ]
            converted.append(AIMessage(content=text, tool_calls=tool_calls))
            converted.extend(
                ToolMessage(
                    content=_result_content(inv.get("result")),
                    tool_call_id=inv["toolCallId"],
                    name=inv["toolName"],
                )
                for inv in invocations
            )
        elif role == "tool":
            converted.append(
                ToolMessage(
                    content=text,
                    tool_call_id=message.get("toolCallId", ""),
                    name=message.get("toolName"),
                )
            )
        else:
            converted.append(HumanMessage(content=text))
    return converted
