"""Tests for request message conversion."""

from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from omega.agent.messages import request_message_text, to_langchain_messages


def test_text_comes_from_content_or_parts() -> None:
    assert request_message_text({"content": "plain"}) == "plain"
    assert request_message_text(
        {"content": "", "parts": [{"type": "text", "text": "a"}, {"type": "image"}, "b"]}
    ) == "ab"


def test_completed_tool_invocations_become_call_and_result() -> None:
    converted = to_langchain_messages(
        [
            {"role": "user", "content": "Weather in Oslo?"},
            {
                "role": "assistant",
                "content": "Checking.",
                "toolInvocations": [
                    {
                        "toolCallId": "c1",
                        "toolName": "weather",
                        "args": {"city": "Oslo"},
                        "state": "result",
                        "result": {"temperature": 40},
                    },
                    {"toolCallId": "c2", "toolName": "weather", "args": {}, "state": "call"},
                ],
            },
        ]
    )

    human, ai, tool = converted
    assert isinstance(human, HumanMessage)
    assert isinstance(ai, AIMessage)
    assert [c["id"] for c in ai.tool_calls] == ["c1"]
    assert isinstance(tool, ToolMessage)
    assert tool.tool_call_id == "c1"
    assert tool.content == '{"temperature": 40}'
