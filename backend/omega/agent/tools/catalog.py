"""Built-in tools offered to the completion model."""

from __future__ import annotations

import calendar
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from langchain_core.tools import BaseTool, tool
from tavily import TavilyClient

from omega.agent.tools.expressions import evaluate_expression
from omega.agent.tools.knowledge_base import KnowledgeBase
from omega.errors import ExpressionError

logger = logging.getLogger(__name__)

# Mock weather data for demonstration
MOCK_WEATHER: dict[str, dict[str, Any]] = {
    "new york": {"temp": 72, "condition": "Partly Cloudy", "humidity": 65, "wind": 8},
    "london": {"temp": 59, "condition": "Rainy", "humidity": 80, "wind": 12},
    "tokyo": {"temp": 68, "condition": "Clear", "humidity": 55, "wind": 5},
    "sydney": {"temp": 77, "condition": "Sunny", "humidity": 70, "wind": 10},
    "paris": {"temp": 64, "condition": "Overcast", "humidity": 75, "wind": 7},
}

WEATHER_CONDITIONS = ["Sunny", "Partly Cloudy", "Cloudy", "Rainy", "Clear"]

UTC = timezone.utc


@tool
def calculator(expression: str) -> dict[str, Any]:
    """Perform mathematical calculations.

    Args:
        expression: Mathematical expression to evaluate (e.g. "2 + 2",
            "sin(PI / 2)", "sqrt(16)").
    """
    logger.debug("calculator: %s", expression)
    try:
        result = evaluate_expression(expression)
    except ExpressionError as exc:
        return {"error": f"Failed to calculate: {exc}", "expression": expression}
    return {
        "result": result,
        "expression": expression,
        "formatted": f"{expression} = {result}",
    }


@tool
def weather(
    city: str, units: Literal["celsius", "fahrenheit"] = "fahrenheit"
) -> dict[str, Any]:
    """Get current weather information for a city.

    Args:
        city: Name of the city.
        units: Temperature units.
    """
    data = MOCK_WEATHER.get(city.strip().lower())
    if data is None:
        # Unknown cities get plausible random conditions
        data = {
            "temp": random.randint(50, 89),
            "condition": random.choice(WEATHER_CONDITIONS),
            "humidity": random.randint(40, 79),
            "wind": random.randint(5, 24),
        }

    if units == "celsius":
        temperature = round((data["temp"] - 32) * 5 / 9)
        symbol = "C"
    else:
        temperature = data["temp"]
        symbol = "F"

    return {
        "city": city,
        "temperature": temperature,
        "units": units,
        "condition": data["condition"],
        "humidity": data["humidity"],
        "windSpeed": data["wind"],
        "timestamp": datetime.now(UTC).isoformat(),
        "formatted": (
            f"{city}: {temperature}°{symbol}, {data['condition']}, "
            f"Humidity: {data['humidity']}%, Wind: {data['wind']} mph"
        ),
    }


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def shift_datetime(value: datetime, amount: float, unit: str) -> datetime:
    """Move ``value`` by ``amount`` units; months and years clamp the day."""
    if unit == "years":
        return _add_months(value, int(amount) * 12)
    if unit == "months":
        return _add_months(value, int(amount))
    return value + timedelta(**{unit: amount})


def _parse_date(date: str | None) -> datetime:
    if not date:
        return datetime.now(UTC)
    parsed = datetime.fromisoformat(date.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@tool("datetime")
def datetime_tool(
    operation: Literal["current", "add", "subtract", "format", "parse"],
    date: str | None = None,
    amount: float | None = None,
    unit: Literal["years", "months", "days", "hours", "minutes", "seconds"]
    | None = None,
    timezone: str | None = None,
) -> dict[str, Any]:
    """Get current date, time, or perform date calculations.

    Args:
        operation: Operation to perform.
        date: ISO date string for operations.
        amount: Amount to add or subtract.
        unit: Unit for add/subtract.
        timezone: IANA timezone (e.g. "America/New_York").
    """
    try:
        target = _parse_date(date)
        tz = ZoneInfo(timezone) if timezone else UTC

        if operation == "current":
            now = datetime.now(tz)
            return {
                "iso": now.isoformat(),
                "unix": int(now.timestamp() * 1000),
                "formatted": now.strftime("%A, %B %d, %Y at %I:%M %p %Z"),
                "date": now.date().isoformat(),
                "time": now.strftime("%H:%M:%S"),
                "timezone": str(tz),
            }

        if operation in ("add", "subtract"):
            if not amount or not unit:
                raise ValueError("Amount and unit required for add/subtract operations")
            sign = 1 if operation == "add" else -1
            result = shift_datetime(target, sign * amount, unit)
            return {
                "original": target.isoformat(),
                "result": result.isoformat(),
                "operation": f"{operation} {amount:g} {unit}",
                "formatted": result.strftime("%A, %B %d, %Y at %I:%M %p %Z"),
            }

        if operation == "format":
            local = target.astimezone(tz)
            return {
                "iso": local.isoformat(),
                "formatted": local.strftime("%A, %B %d, %Y at %I:%M %p %Z"),
                "date": local.date().isoformat(),
                "time": local.strftime("%H:%M:%S"),
                "timezone": str(tz),
            }

        if operation == "parse":
            if not date:
                raise ValueError("Date string required for parse operation")
            return {
                "iso": target.isoformat(),
                "unix": int(target.timestamp() * 1000),
                "year": target.year,
                "month": target.month,
                "day": target.day,
                "hour": target.hour,
                "minute": target.minute,
                "second": target.second,
                "dayOfWeek": target.isoweekday() % 7,
                "formatted": target.strftime("%A, %B %d, %Y at %I:%M %p %Z"),
            }

        raise ValueError(f"Unknown operation: {operation}")
    except (ValueError, ZoneInfoNotFoundError, OverflowError) as exc:
        return {"error": str(exc), "operation": operation}


def build_knowledge_base_tool(knowledge_base: KnowledgeBase) -> BaseTool:
    """Bind the knowledge-base tool to an application-scoped store."""

    @tool("knowledge_base")
    def knowledge_base_tool(
        operation: Literal["store", "retrieve", "search", "delete", "list"],
        key: str | None = None,
        value: Any = None,
        query: str | None = None,
        category: str | None = None,
    ) -> dict[str, Any]:
        """Store and retrieve information from a knowledge base.

        Args:
            operation: Operation to perform.
            key: Key for the information.
            value: Value to store.
            query: Search query for finding information.
            category: Category for organizing information.
        """
        try:
            return knowledge_base.run(
                operation, key=key, value=value, query=query, category=category
            )
        except ValueError as exc:
            return {"success": False, "error": str(exc), "operation": operation}

    return knowledge_base_tool


def build_web_search_tool(api_key: str) -> BaseTool:
    """Return a Tavily-backed search tool bound to ``api_key``."""

    @tool
    def web_search(query: str) -> str:
        """Search the web for current information, news, or real-time data.

        Use this for current events, live data, or facts that may have
        changed recently. Do not use it for general knowledge questions.

        Args:
            query: A clear, specific search query (e.g. "latest news about AI").

        Returns:
            Search results with relevant excerpts and sources.
        """
        try:
            client = TavilyClient(api_key=api_key)

            # Basic depth and three results keep responses concise
            response = client.search(
                query=query,
                search_depth="basic",
                max_results=3,
                include_answer=True,
            )

            results = []
            if response.get("answer"):
                results.append(f"Summary: {response['answer']}\n")

            if response.get("results"):
                results.append("Sources:")
                for i, result in enumerate(response["results"], 1):
                    content = result.get("content", "")
                    results.append(f"\n{i}. {result.get('title', 'Untitled')}")
                    results.append(
                        f"   {content[:200]}..." if len(content) > 200 else f"   {content}"
                    )
                    results.append(f"   Source: {result.get('url', '')}")

            if not results:
                return "No search results found."

            return "\n".join(results)

        except Exception as e:
            logger.exception("web_search failed for query: %s", query)
            return f"Web search encountered an error: {str(e)}"

    return web_search
