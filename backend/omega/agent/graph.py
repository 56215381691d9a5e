"""LangGraph tool-calling agent for the chat pipeline.

Builds a two-node graph (``agent`` → ``tools`` → ``agent`` ...) that stops
when the model answers without tool calls or after ``max_steps`` model
invocations, and turns its stream into step-level events for the caller.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Sequence
from uuid import uuid4

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage, ToolMessage
from langchain_core.tools import BaseTool
from langgraph.graph import END, START, StateGraph

from omega.agent.messages import message_text
from omega.agent.state import AgentState
from omega.errors import ToolPreconditionError

logger = logging.getLogger(__name__)

AGENT_NODE = "agent"
TOOLS_NODE = "tools"


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------


@dataclass
class StepRecord:
    """Everything one model invocation produced, plus its tool results."""

    message_id: str
    text: str = ""
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    tool_results: list[dict[str, Any]] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: dict[str, int] = field(
        default_factory=lambda: {"promptTokens": 0, "completionTokens": 0}
    )

    @property
    def has_output(self) -> bool:
        return bool(self.text or self.tool_calls or self.tool_results)


@dataclass
class StepStarted:
    message_id: str


@dataclass
class TextDelta:
    text: str


@dataclass
class ToolCallEvent:
    call: dict[str, Any]


@dataclass
class ToolResultEvent:
    result: dict[str, Any]


@dataclass
class StepFinished:
    step: StepRecord
    is_continued: bool = False


AgentEvent = StepStarted | TextDelta | ToolCallEvent | ToolResultEvent | StepFinished


# ----------------------------------------------------------------------
# Graph
# ----------------------------------------------------------------------


async def execute_tool_call(
    tools_by_name: dict[str, BaseTool], call: dict[str, Any]
) -> ToolMessage:
    """Run one tool call; ordinary failures become an error ``ToolMessage``."""
    name = call["name"]
    call_id = call.get("id") or f"call_{uuid4().hex[:12]}"
    tool = tools_by_name.get(name)
    if tool is None:
        error = f"{name} is not a valid tool"
        return ToolMessage(
            content=f"Error: {error}",
            tool_call_id=call_id,
            name=name,
            status="error",
            artifact={"error": error},
        )

    try:
        output = await tool.ainvoke(call.get("args") or {})
    except ToolPreconditionError:
        raise
    except Exception as exc:
        logger.warning("Tool %s failed: %s", name, exc)
        return ToolMessage(
            content=f"Error: {exc}",
            tool_call_id=call_id,
            name=name,
            status="error",
            artifact={"error": str(exc)},
        )

    content = output if isinstance(output, str) else json.dumps(output, default=str)
    return ToolMessage(content=content, tool_call_id=call_id, name=name, artifact=output)


def build_agent_graph(
    model: BaseChatModel,
    tools: Sequence[BaseTool],
    *,
    max_steps: int,
):
    """Compile the model/tools loop for one request."""
    tools_by_name = {tool.name: tool for tool in tools}
    bound = model.bind_tools(list(tools)) if tools else model

    async def call_model(state: AgentState) -> dict[str, Any]:
        response = await bound.ainvoke(list(state["messages"]))
        return {"messages": [response], "steps": state.get("steps", 0) + 1}

    async def call_tools(state: AgentState) -> dict[str, Any]:
        last = state["messages"][-1]
        # Tools run one at a time, in the order the model asked for them
        results: list[ToolMessage] = []
        for call in last.tool_calls:
            try:
                results.append(await execute_tool_call(tools_by_name, call))
            except ToolPreconditionError as exc:
                exc.completed = results
                raise
        return {"messages": results}

    def after_model(state: AgentState) -> str:
        last = state["messages"][-1]
        if isinstance(last, AIMessage) and last.tool_calls:
            return TOOLS_NODE
        return END

    def after_tools(state: AgentState) -> str:
        if state.get("steps", 0) >= max_steps:
            return END
        return AGENT_NODE

    graph = StateGraph(AgentState)
    graph.add_node(AGENT_NODE, call_model)
    graph.add_node(TOOLS_NODE, call_tools)
    graph.add_edge(START, AGENT_NODE)
    graph.add_conditional_edges(AGENT_NODE, after_model, [TOOLS_NODE, END])
    graph.add_conditional_edges(TOOLS_NODE, after_tools, [AGENT_NODE, END])
    return graph.compile()


def _finish_reason(message: AIMessage) -> str:
    if message.tool_calls:
        return "tool-calls"
    raw = str(
        message.response_metadata.get("finish_reason")
        or message.response_metadata.get("stop_reason")
        or "stop"
    ).lower()
    if raw in ("length", "max_tokens"):
        return "length"
    if raw in ("content_filter", "safety"):
        return "content-filter"
    return "stop"


def _usage(message: AIMessage) -> dict[str, int]:
    usage = message.usage_metadata or {}
    return {
        "promptTokens": usage.get("input_tokens", 0),
        "completionTokens": usage.get("output_tokens", 0),
    }


def _tool_result(message: ToolMessage, args: dict[str, Any]) -> dict[str, Any]:
    return {
        "toolCallId": message.tool_call_id,
        "toolName": message.name,
        "args": args,
        "result": message.artifact if message.artifact is not None else message.content,
        "isError": message.status == "error",
    }


class AssistantAgent:
    """Runs the tool-calling loop and reports it as a stream of events."""

    def __init__(
        self,
        model: BaseChatModel,
        tools: Sequence[BaseTool],
        *,
        max_steps: int = 5,
    ) -> None:
        self._tools = list(tools)
        self._max_steps = max_steps
        self._graph = build_agent_graph(model, self._tools, max_steps=max_steps)

        logger.info(
            "AssistantAgent initialised with tools=%d, max_steps=%d",
            len(self._tools),
            max_steps,
        )

    async def stream(self, messages: list[BaseMessage]) -> AsyncIterator[AgentEvent]:
        """Yield events for one exchange.

        Text tokens from the model are forwarded as they arrive; when the
        model does not stream, the text of the finished step is emitted
        instead. Every step ends with a :class:`StepFinished` event. A
        :class:`ToolPreconditionError` closes the pending step, keeping the
        results of calls that finished and failing the rest, and is re-raised,
        ending the exchange.
        """
        config = {"recursion_limit": self._max_steps * 2 + 5}

        step: StepRecord | None = None
        streamed_text = ""
        pending: StepRecord | None = None

        try:
            async for mode, chunk in self._graph.astream(
                {"messages": messages, "steps": 0},
                config=config,
                stream_mode=["messages", "updates"],
            ):
                # ── Streaming tokens from the model ────────────────────
                if mode == "messages":
                    message, metadata = chunk
                    if metadata.get("langgraph_node") != AGENT_NODE:
                        continue
                    if not isinstance(message, AIMessageChunk):
                        continue
                    text = message_text(message.content)
                    if not text:
                        continue
                    if step is None:
                        step = StepRecord(message_id=f"msg-{uuid4().hex}")
                        yield StepStarted(step.message_id)
                    streamed_text += text
                    yield TextDelta(text)
                    continue

                # ── Node finished ──────────────────────────────────────
                for node, update in chunk.items():
                    if not update:
                        continue

                    if node == AGENT_NODE:
                        ai: AIMessage = update["messages"][-1]
                        if step is None:
                            step = StepRecord(message_id=f"msg-{uuid4().hex}")
                            yield StepStarted(step.message_id)

                        text = message_text(ai.content)
                        if text and not streamed_text:
                            yield TextDelta(text)
                        step.text = text or streamed_text
                        step.finish_reason = _finish_reason(ai)
                        step.usage = _usage(ai)

                        for call in ai.tool_calls:
                            record = {
                                "toolCallId": call.get("id") or "",
                                "toolName": call["name"],
                                "args": call.get("args") or {},
                            }
                            step.tool_calls.append(record)
                            yield ToolCallEvent(record)

                        if step.tool_calls:
                            pending = step
                        else:
                            yield StepFinished(step, is_continued=False)
                        step = None
                        streamed_text = ""

                    elif node == TOOLS_NODE and pending is not None:
                        args_by_id = {c["toolCallId"]: c["args"] for c in pending.tool_calls}
                        for tool_message in update["messages"]:
                            result = _tool_result(
                                tool_message, args_by_id.get(tool_message.tool_call_id, {})
                            )
                            pending.tool_results.append(result)
                            yield ToolResultEvent(result)
                        yield StepFinished(pending, is_continued=True)
                        pending = None

        except ToolPreconditionError as exc:
            if pending is not None:
                args_by_id = {c["toolCallId"]: c["args"] for c in pending.tool_calls}
                for tool_message in exc.completed:
                    result = _tool_result(
                        tool_message, args_by_id.get(tool_message.tool_call_id, {})
                    )
                    pending.tool_results.append(result)
                    yield ToolResultEvent(result)
                done = {r["toolCallId"] for r in pending.tool_results}
                for call in pending.tool_calls:
                    if call["toolCallId"] in done:
                        continue
                    result = {**call, "result": {"error": str(exc)}, "isError": True}
                    pending.tool_results.append(result)
                    yield ToolResultEvent(result)
                pending.finish_reason = "error"
                yield StepFinished(pending, is_continued=False)
            raise
