"""Agent state definition for LangGraph."""

from typing import Annotated, Sequence, TypedDict

from langchain_core.messages import BaseMessage
from langgraph.graph.message import add_messages


class AgentState(TypedDict):
    """State threaded through the model/tools loop.

    Uses LangGraph's ``add_messages`` reducer so that new messages are
    *appended* to the existing list rather than replacing it. ``steps``
    counts model invocations so far.
    """

    messages: Annotated[Sequence[BaseMessage], add_messages]
    steps: int
