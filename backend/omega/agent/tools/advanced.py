"""Advanced-mode tools: data analysis, workflows and formula tool registration.

``create_tool`` is a capability-registration protocol. The model may define a
new tool only as an arithmetic formula over named numeric parameters; the
formula is checked by :class:`SafeEvaluator` at registration time and again
on every call. Caller-supplied code is never executed.
"""

from __future__ import annotations

import logging
import math
import re
import statistics
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal

from langchain_core.tools import BaseTool, StructuredTool, tool
from pydantic import BaseModel, Field, create_model

from omega.agent.tools.expressions import MATH_FUNCTIONS, SafeEvaluator
from omega.errors import ExpressionError, ToolNameConflictError, ToolPreconditionError

if TYPE_CHECKING:
    from omega.db.adapter import DatabaseAdapter
    from omega.db.models import Tool

logger = logging.getLogger(__name__)

DYNAMIC_CATEGORY = "dynamic"
TOOL_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,63}$")
PARAMETER_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,31}$")

Operation = Literal["mean", "median", "mode", "stddev", "min", "max", "sum"]


# ----------------------------------------------------------------------
# data_analysis
# ----------------------------------------------------------------------


def prepare_analysis(data: list[float]) -> tuple[list[float], dict[str, int]]:
    """Drop non-finite values; raise when nothing usable remains."""
    clean = [value for value in data if math.isfinite(value)]
    if not clean:
        raise ToolPreconditionError("No valid data to analyze")
    return clean, {
        "originalCount": len(data),
        "cleanedCount": len(clean),
        "removedCount": len(data) - len(clean),
    }


def _run_operation(op: str, data: list[float]) -> float:
    if op == "mean":
        return statistics.fmean(data)
    if op == "median":
        return statistics.median(data)
    if op == "mode":
        return min(statistics.multimode(data))
    if op == "stddev":
        return statistics.pstdev(data)
    if op == "min":
        return min(data)
    if op == "max":
        return max(data)
    if op == "sum":
        return math.fsum(data)
    raise ValueError(f"Unknown operation: {op}")


@tool
def data_analysis(data: list[float], operations: list[Operation]) -> dict[str, Any]:
    """Analyze a list of numbers (mean, median, mode, stddev, min, max, sum).

    Args:
        data: Array of numbers to analyze.
        operations: Statistics to compute.
    """
    clean, metadata = prepare_analysis(data)
    results = {op: _run_operation(op, clean) for op in operations}
    return {
        "results": results,
        "metadata": metadata,
        "summary": f"Analyzed {len(clean)} values with {len(operations)} operations",
    }


# ----------------------------------------------------------------------
# workflow
# ----------------------------------------------------------------------


class WorkflowStep(BaseModel):
    action: str = Field(description="Name of the action to perform")
    params: Any = Field(default=None, description="Parameters for the action")
    condition: str | None = Field(
        default=None,
        description=(
            "Optional boolean expression over earlier steps, e.g. "
            "'step1 and not step2'. stepN is true when step N executed."
        ),
    )


@tool
def workflow(steps: list[WorkflowStep]) -> dict[str, Any]:
    """Execute a multi-step workflow, skipping steps whose condition is false.

    Args:
        steps: Ordered workflow steps.
    """
    executed: dict[str, bool] = {f"step{i}": False for i in range(1, len(steps) + 1)}
    results: list[dict[str, Any]] = []

    for index, step in enumerate(steps, 1):
        if isinstance(step, dict):
            step = WorkflowStep(**step)
        if step.condition:
            try:
                allowed = SafeEvaluator(names=executed, functions={}).evaluate(
                    step.condition
                )
            except ExpressionError:
                results.append(
                    {"step": index, "action": step.action, "error": "Invalid condition"}
                )
                continue
            if not allowed:
                results.append(
                    {
                        "step": index,
                        "action": step.action,
                        "skipped": True,
                        "reason": "Condition not met",
                    }
                )
                continue

        results.append(
            {
                "step": index,
                "action": step.action,
                "params": step.params,
                "executed": True,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )
        executed[f"step{index}"] = True

    return {
        "workflow": "completed",
        "totalSteps": len(steps),
        "executedSteps": sum(1 for r in results if r.get("executed")),
        "results": results,
    }


# ----------------------------------------------------------------------
# Formula tools
# ----------------------------------------------------------------------


def validate_formula(
    name: str, parameters: dict[str, str], expression: str
) -> None:
    """Check a formula tool definition.

    Raises:
        ExpressionError: If the name, a parameter or the expression is invalid.
    """
    if not TOOL_NAME_PATTERN.match(name):
        raise ExpressionError(f"Invalid tool name: {name!r}")
    for param in parameters:
        if not PARAMETER_PATTERN.match(param) or param in MATH_FUNCTIONS:
            raise ExpressionError(f"Invalid parameter name: {param!r}")

    SafeEvaluator(names={p: 1.0 for p in parameters}).validate(expression)


def formula_schema(parameters: dict[str, str]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            name: {"type": "number", "description": description}
            for name, description in parameters.items()
        },
        "required": list(parameters),
    }


def build_formula_tool(definition: Tool) -> BaseTool:
    """Materialise a persisted ``dynamic`` tool definition as a LangChain tool."""
    implementation = definition.implementation or {}
    if implementation.get("kind") != "expression":
        raise ExpressionError(f"Unsupported tool implementation for {definition.name}")
    expression = implementation["expression"]
    properties = (definition.parameters or {}).get("properties", {})

    fields = {
        param: (float, Field(description=spec.get("description", "")))
        for param, spec in properties.items()
    }
    args_schema = create_model(f"{definition.name}_input", **fields)

    def run(**kwargs: float) -> dict[str, Any]:
        try:
            result = SafeEvaluator(names=kwargs).evaluate(expression)
        except ExpressionError as exc:
            return {"error": str(exc), "expression": expression}
        return {"result": result, "expression": expression, "inputs": kwargs}

    return StructuredTool.from_function(
        func=run,
        name=definition.name,
        description=definition.description or f"Evaluate {expression}",
        args_schema=args_schema,
    )


def build_create_tool(adapter: DatabaseAdapter) -> BaseTool:
    """Return the registration tool bound to the persistence adapter."""

    @tool
    async def create_tool(
        name: str,
        description: str,
        parameters: dict[str, str],
        expression: str,
    ) -> dict[str, Any]:
        """Register a new calculation tool defined by an arithmetic formula.

        The formula may use the declared parameters, + - * / // % **,
        comparisons, the constants PI and E, and the functions sin, cos,
        tan, sqrt, pow, abs, round, floor, ceil, min and max. The new tool
        becomes available on later requests.

        Args:
            name: Name of the new tool (letters, digits, underscores).
            description: What the tool does.
            parameters: Mapping of numeric parameter name to its description.
            expression: Formula over the parameters, e.g. "price * (1 + rate)".
        """
        try:
            validate_formula(name, parameters, expression)
            record = await adapter.create_tool(
                name=name,
                description=description,
                parameters=formula_schema(parameters),
                category=DYNAMIC_CATEGORY,
                implementation={"kind": "expression", "expression": expression},
            )
        except (ExpressionError, ToolNameConflictError) as exc:
            return {"success": False, "error": str(exc)}

        logger.info("Registered formula tool %s: %s", name, expression)
        return {
            "success": True,
            "message": f'Tool "{name}" created successfully',
            "definition": {
                "id": record.id,
                "name": name,
                "description": description,
                "parameters": record.parameters,
                "expression": expression,
                "createdAt": record.created_at.isoformat(),
            },
        }

    return create_tool
