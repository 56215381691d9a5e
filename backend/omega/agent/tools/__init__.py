"""Tools offered to the completion model."""

from .knowledge_base import KnowledgeBase
from .registry import ToolRegistry, build_tool_registry

__all__ = ["KnowledgeBase", "ToolRegistry", "build_tool_registry"]
