"""Tests for the tool catalog, the safe evaluator and the registry."""

import math
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from omega.agent.tools.advanced import (
    build_formula_tool,
    data_analysis,
    formula_schema,
    validate_formula,
    workflow,
)
from omega.agent.tools.catalog import (
    build_knowledge_base_tool,
    calculator,
    datetime_tool,
    shift_datetime,
    weather,
)
from omega.agent.tools.expressions import SafeEvaluator, evaluate_expression
from omega.agent.tools.knowledge_base import KnowledgeBase
from omega.agent.tools.registry import ToolRegistry, build_tool_registry
from omega.config import Settings
from omega.errors import DuplicateToolError, ExpressionError, ToolPreconditionError


# ----------------------------------------------------------------------
# Safe evaluator
# ----------------------------------------------------------------------


@pytest.mark.parametrize(
    ("expression", "expected"),
    [
        ("2 + 3 * 4", 14),
        ("sqrt(16)", 4.0),
        ("round(sin(PI / 2))", 1),
        ("max(1, 7, 3) - min(4, 2)", 5),
        ("-2 ** 2", -4),
        ("10 % 4 + 7 // 2", 5),
        ("(2 ** 100) ** 10", 2**1000),
    ],
)
def test_evaluate_expression(expression, expected) -> None:
    assert evaluate_expression(expression) == expected


@pytest.mark.parametrize(
    "expression",
    [
        "__import__('os').system('id')",
        "open('/etc/passwd')",
        "(1).__class__",
        "[1, 2, 3]",
        "'text'",
        "lambda: 1",
        "2 ** 100000",
        "((10 ** 999) ** 999) ** 999",
        "(10 ** 999) ** 10",
        "unknown + 1",
        "",
    ],
)
def test_evaluator_rejects_unsafe_or_invalid_input(expression) -> None:
    with pytest.raises(ExpressionError):
        evaluate_expression(expression)


def test_division_by_zero_is_an_expression_error() -> None:
    with pytest.raises(ExpressionError):
        evaluate_expression("1 / 0")


def test_boolean_conditions_without_functions() -> None:
    evaluator = SafeEvaluator(names={"step1": True, "step2": False}, functions={})
    assert evaluator.evaluate("step1 and not step2") is True
    with pytest.raises(ExpressionError):
        evaluator.evaluate("sqrt(4) > 1")


def test_free_names_ignores_called_functions() -> None:
    assert SafeEvaluator().free_names("sqrt(a * a + b * b)") == {"a", "b"}


# ----------------------------------------------------------------------
# Built-in catalog
# ----------------------------------------------------------------------


def test_calculator_formats_result() -> None:
    result = calculator.invoke({"expression": "6 * 7"})
    assert result == {"result": 42, "expression": "6 * 7", "formatted": "6 * 7 = 42"}


def test_calculator_reports_failure_as_payload() -> None:
    result = calculator.invoke({"expression": "1 / 0"})
    assert result["error"].startswith("Failed to calculate:")


def test_weather_known_city_in_celsius() -> None:
    result = weather.invoke({"city": "London", "units": "celsius"})
    assert result["temperature"] == 15
    assert result["condition"] == "Rainy"
    assert "15°C" in result["formatted"]


def test_weather_unknown_city_is_plausible() -> None:
    result = weather.invoke({"city": "Atlantis"})
    assert 50 <= result["temperature"] <= 89
    assert result["units"] == "fahrenheit"


def test_month_arithmetic_clamps_day() -> None:
    start = datetime(2024, 1, 31, tzinfo=timezone.utc)
    assert shift_datetime(start, 1, "months").date().isoformat() == "2024-02-29"
    assert shift_datetime(start, -2, "months").date().isoformat() == "2023-11-30"


def test_datetime_add_and_parse() -> None:
    added = datetime_tool.invoke(
        {"operation": "add", "date": "2024-03-10T12:00:00Z", "amount": 2, "unit": "days"}
    )
    assert added["result"].startswith("2024-03-12T12:00:00")

    parsed = datetime_tool.invoke({"operation": "parse", "date": "2024-03-10T12:30:00Z"})
    assert (parsed["year"], parsed["month"], parsed["day"], parsed["minute"]) == (2024, 3, 10, 30)


def test_datetime_format_in_timezone() -> None:
    assert "timezone" in datetime_tool.args
    result = datetime_tool.invoke(
        {"operation": "format", "date": "2024-03-10T12:00:00Z", "timezone": "Asia/Tokyo"}
    )
    assert result["time"] == "21:00:00"
    assert result["timezone"] == "Asia/Tokyo"


def test_datetime_errors_are_payloads() -> None:
    result = datetime_tool.invoke({"operation": "add", "date": "2024-03-10"})
    assert result == {
        "error": "Amount and unit required for add/subtract operations",
        "operation": "add",
    }
    assert "error" in datetime_tool.invoke({"operation": "parse", "date": "not a date"})


def test_knowledge_base_operations() -> None:
    kb_tool = build_knowledge_base_tool(KnowledgeBase())

    kb_tool.invoke({"operation": "store", "key": "dog", "value": "Rex", "category": "pets"})
    kb_tool.invoke({"operation": "store", "key": "car", "value": {"make": "Volvo"}})

    assert kb_tool.invoke({"operation": "retrieve", "key": "dog"})["data"]["value"] == "Rex"
    assert kb_tool.invoke({"operation": "search", "query": "volvo"})["count"] == 1
    assert kb_tool.invoke({"operation": "list", "category": "pets"})["count"] == 1
    assert kb_tool.invoke({"operation": "delete", "key": "dog"})["success"] is True
    assert kb_tool.invoke({"operation": "retrieve", "key": "dog"})["success"] is False

    missing = kb_tool.invoke({"operation": "store", "key": "x"})
    assert missing["success"] is False
    assert "required" in missing["error"]


# ----------------------------------------------------------------------
# Advanced tools
# ----------------------------------------------------------------------


def test_data_analysis_drops_non_finite_values() -> None:
    result = data_analysis.func(
        data=[1.0, 2.0, 3.0, 4.0, math.nan, math.inf],
        operations=["mean", "median", "sum", "max"],
    )
    assert result["results"] == {"mean": 2.5, "median": 2.5, "sum": 10.0, "max": 4.0}
    assert result["metadata"] == {"originalCount": 6, "cleanedCount": 4, "removedCount": 2}


def test_data_analysis_without_usable_values_raises_precondition() -> None:
    with pytest.raises(ToolPreconditionError):
        data_analysis.func(data=[math.nan], operations=["mean"])


def test_workflow_conditions() -> None:
    result = workflow.invoke(
        {
            "steps": [
                {"action": "fetch"},
                {"action": "notify", "condition": "step1 and not step3"},
                {"action": "cleanup", "condition": "step2 and step3"},
                {"action": "broken", "condition": "step1 +"},
            ]
        }
    )

    outcomes = result["results"]
    assert outcomes[0]["executed"] is True
    assert outcomes[1]["executed"] is True
    assert outcomes[2] == {
        "step": 3,
        "action": "cleanup",
        "skipped": True,
        "reason": "Condition not met",
    }
    assert outcomes[3]["error"] == "Invalid condition"
    assert result["executedSteps"] == 2


def test_validate_formula_rejects_unknown_names() -> None:
    validate_formula("bmi", {"weight": "kg", "height": "m"}, "weight / height ** 2")
    with pytest.raises(ExpressionError):
        validate_formula("bmi", {"weight": "kg"}, "weight / height ** 2")
    with pytest.raises(ExpressionError):
        validate_formula("bad name", {}, "1")
    with pytest.raises(ExpressionError):
        validate_formula("calls", {"x": "x"}, "__import__('os')")


def test_formula_tool_from_definition() -> None:
    definition = SimpleNamespace(
        name="bmi",
        description="Body mass index",
        parameters=formula_schema({"weight": "kg", "height": "m"}),
        implementation={"kind": "expression", "expression": "weight / height ** 2"},
    )

    bmi = build_formula_tool(definition)

    assert bmi.name == "bmi"
    assert set(bmi.args) == {"weight", "height"}
    assert bmi.invoke({"weight": 80, "height": 2})["result"] == 20.0


# ----------------------------------------------------------------------
# Registry
# ----------------------------------------------------------------------


def _registry(tavily_api_key: str = "") -> ToolRegistry:
    settings = Settings(_env_file=None, tavily_api_key=tavily_api_key)
    return build_tool_registry(settings, adapter=None, knowledge_base=KnowledgeBase())


def test_registry_base_and_advanced_sets() -> None:
    registry = _registry()

    base = {t.name for t in registry.select()}
    assert base == {"calculator", "weather", "datetime", "knowledge_base"}

    advanced = {t.name for t in registry.select(advanced=True)}
    assert advanced == base | {"create_tool", "data_analysis", "workflow"}


def test_registry_web_search_requires_key() -> None:
    assert "web_search" not in _registry()
    assert "web_search" in _registry("tvly-test")


def test_registry_allow_list_and_disabled() -> None:
    registry = _registry()

    selected = registry.select(["calculator", "weather"], disabled=["weather"])

    assert [t.name for t in selected] == ["calculator"]


def test_registry_allow_list_keeps_advanced_set() -> None:
    registry = _registry()

    names = {t.name for t in registry.select(["calculator"], advanced=True)}

    assert names == {"calculator", "create_tool", "data_analysis", "workflow"}


def test_registry_materialises_dynamic_tools_in_advanced_mode_only() -> None:
    registry = _registry()
    dynamic = [
        SimpleNamespace(
            name="double",
            description="Double a number",
            parameters=formula_schema({"x": "value"}),
            implementation={"kind": "expression", "expression": "x * 2"},
        ),
        SimpleNamespace(name="legacy", description="", parameters={}, implementation=None),
    ]

    assert "double" not in {t.name for t in registry.select(dynamic=dynamic)}
    names = {t.name for t in registry.select(advanced=True, dynamic=dynamic)}
    assert "double" in names
    assert "legacy" not in names


def test_registry_rejects_duplicates() -> None:
    registry = ToolRegistry()
    registry.register(calculator)
    with pytest.raises(DuplicateToolError):
        registry.register(calculator)


def test_definitions_describe_input_schema() -> None:
    definitions = {d["name"]: d for d in _registry().definitions()}
    assert definitions["calculator"]["category"] == "builtin"
    assert "expression" in definitions["calculator"]["parameters"]["properties"]
    assert definitions["workflow"]["category"] == "advanced"
