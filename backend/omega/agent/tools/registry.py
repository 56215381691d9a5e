"""Tool registry: the named capabilities offered to the completion model."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from langchain_core.tools import BaseTool

from omega.agent.tools.advanced import (
    DYNAMIC_CATEGORY,
    build_create_tool,
    build_formula_tool,
    data_analysis,
    workflow,
)
from omega.agent.tools.catalog import (
    build_knowledge_base_tool,
    build_web_search_tool,
    calculator,
    datetime_tool,
    weather,
)
from omega.agent.tools.knowledge_base import KnowledgeBase
from omega.errors import DuplicateToolError, ExpressionError

if TYPE_CHECKING:
    from omega.config import Settings
    from omega.db.adapter import DatabaseAdapter
    from omega.db.models import Tool

logger = logging.getLogger(__name__)

BUILTIN_CATEGORY = "builtin"
ADVANCED_CATEGORY = "advanced"


class ToolRegistry:
    """Name → tool mapping split into the base catalog and the advanced set."""

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}
        self._categories: dict[str, str] = {}

    def register(self, tool: BaseTool, category: str = BUILTIN_CATEGORY) -> None:
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        self._tools[tool.name] = tool
        self._categories[tool.name] = category

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def names(self, category: str | None = None) -> list[str]:
        return [
            name
            for name in self._tools
            if category is None or self._categories[name] == category
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def definitions(self) -> list[dict[str, Any]]:
        """Describe every registered tool as a persistable definition."""
        return [
            {
                "name": name,
                "description": tool.description,
                "parameters": tool.tool_call_schema.model_json_schema(),
                "category": self._categories[name],
            }
            for name, tool in self._tools.items()
        ]

    def select(
        self,
        allowed: Iterable[str] | None = None,
        *,
        advanced: bool = False,
        disabled: Iterable[str] = (),
        dynamic: Iterable[Tool] = (),
    ) -> list[BaseTool]:
        """Build the effective tool set for one request.

        Args:
            allowed: Optional allow-list of built-in tool names from the caller.
            advanced: Include the advanced set and ``dynamic`` tools.
            disabled: Names whose persisted definition is disabled.
            dynamic: Persisted ``dynamic`` definitions to materialise.
        """
        allowed_names = set(allowed) if allowed is not None else None
        candidates = [
            tool
            for name, tool in self._tools.items()
            if self._categories[name] == BUILTIN_CATEGORY
            and (allowed_names is None or name in allowed_names)
        ]
        # The advanced set is merged after the allow-list, which never removes it
        if advanced:
            candidates.extend(
                tool
                for name, tool in self._tools.items()
                if self._categories[name] == ADVANCED_CATEGORY
            )
            for definition in dynamic:
                if definition.name in self._tools:
                    continue
                try:
                    candidates.append(build_formula_tool(definition))
                except ExpressionError:
                    logger.warning("Skipping malformed dynamic tool %s", definition.name)

        disabled_names = set(disabled)
        return [tool for tool in candidates if tool.name not in disabled_names]


def build_tool_registry(
    settings: Settings,
    adapter: DatabaseAdapter,
    knowledge_base: KnowledgeBase,
) -> ToolRegistry:
    """Assemble the catalog for one application instance."""
    registry = ToolRegistry()
    registry.register(calculator)
    registry.register(weather)
    registry.register(datetime_tool)
    registry.register(build_knowledge_base_tool(knowledge_base))

    # Add web search tool only if API key is configured
    if settings.tavily_api_key:
        registry.register(build_web_search_tool(settings.tavily_api_key))
    else:
        logger.warning("TAVILY_API_KEY not set - web search tool disabled")

    registry.register(build_create_tool(adapter), ADVANCED_CATEGORY)
    registry.register(data_analysis, ADVANCED_CATEGORY)
    registry.register(workflow, ADVANCED_CATEGORY)

    logger.info("Tool registry ready: %s", ", ".join(registry.names()))
    return registry


__all__ = ["DYNAMIC_CATEGORY", "ToolRegistry", "build_tool_registry"]
