"""Line-oriented data-stream protocol spoken by the chat endpoints.

Each line is ``<code>:<json>\\n``:

====  ==================  ===========================================
code  part                value
====  ==================  ===========================================
f     start step          ``{"messageId": ...}``
0     text                ``"token"``
9     tool call           ``{"toolCallId", "toolName", "args"}``
a     tool result         ``{"toolCallId", "result"}``
e     finish step         ``{"finishReason", "usage", "isContinued"}``
d     finish message      ``{"finishReason", "usage"}``
3     error               ``"message"``
====  ==================  ===========================================
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Iterator

STREAM_HEADER = "x-vercel-ai-data-stream"
STREAM_VERSION = "v1"
CHAT_ID_HEADER = "X-Chat-Id"

PART_CODES: dict[str, str] = {
    "start_step": "f",
    "text": "0",
    "tool_call": "9",
    "tool_result": "a",
    "finish_step": "e",
    "finish_message": "d",
    "error": "3",
}
PART_NAMES: dict[str, str] = {code: name for name, code in PART_CODES.items()}


def format_part(name: str, value: Any) -> str:
    return f"{PART_CODES[name]}:{json.dumps(value, separators=(',', ':'), default=str)}\n"


def start_step(message_id: str) -> str:
    return format_part("start_step", {"messageId": message_id})


def text(delta: str) -> str:
    return format_part("text", delta)


def tool_call(tool_call_id: str, tool_name: str, args: dict[str, Any]) -> str:
    return format_part(
        "tool_call", {"toolCallId": tool_call_id, "toolName": tool_name, "args": args}
    )


def tool_result(tool_call_id: str, result: Any) -> str:
    return format_part("tool_result", {"toolCallId": tool_call_id, "result": result})


def finish_step(finish_reason: str, usage: dict[str, int], is_continued: bool) -> str:
    return format_part(
        "finish_step",
        {"finishReason": finish_reason, "usage": usage, "isContinued": is_continued},
    )


def finish_message(finish_reason: str, usage: dict[str, int]) -> str:
    return format_part("finish_message", {"finishReason": finish_reason, "usage": usage})


def error(message: str) -> str:
    return format_part("error", message)


def parse_line(line: str) -> tuple[str, Any]:
    """Decode one protocol line into ``(part_name, value)``.

    Raises:
        ValueError: If the line is not a known part.
    """
    code, sep, payload = line.rstrip("\n").partition(":")
    if not sep or code not in PART_NAMES:
        raise ValueError(f"Not a stream part: {line!r}")
    return PART_NAMES[code], json.loads(payload)


def parse_stream(lines: Iterable[str]) -> Iterator[tuple[str, Any]]:
    """Decode every non-empty line of a stream body."""
    for line in lines:
        if line.strip():
            yield parse_line(line)
