"""Restricted expression evaluator used by the calculator and formula tools.

Expressions are parsed with :mod:`ast` and walked node by node; only
arithmetic, comparisons, boolean operators, whitelisted function calls and
known names are accepted. Nothing is ever passed to ``eval``.
"""

from __future__ import annotations

import ast
import math
import operator
from typing import Any, Callable, Mapping

from omega.errors import ExpressionError

MATH_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "sqrt": math.sqrt,
    "pow": math.pow,
    "abs": abs,
    "round": round,
    "floor": math.floor,
    "ceil": math.ceil,
    "min": min,
    "max": max,
}

MATH_CONSTANTS: dict[str, float] = {"PI": math.pi, "E": math.e}

_BINARY_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

_COMPARE_OPS: dict[type[ast.cmpop], Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

# Bounds for `**`; nested powers such as ((10**999)**999)**999 must stay cheap.
MAX_EXPONENT = 1000
MAX_RESULT_BITS = 10_000


def _check_power(base: Any, exponent: Any) -> None:
    if abs(exponent) > MAX_EXPONENT:
        raise ExpressionError("Exponent too large")
    if isinstance(base, int) and isinstance(exponent, int) and exponent > 0:
        if abs(base).bit_length() * exponent > MAX_RESULT_BITS:
            raise ExpressionError("Result too large")


class SafeEvaluator:
    """Evaluate a restricted expression against a set of names."""

    def __init__(
        self,
        names: Mapping[str, Any] | None = None,
        functions: Mapping[str, Callable[..., Any]] | None = None,
    ) -> None:
        self.names = {**MATH_CONSTANTS, **(names or {})}
        self.functions = dict(MATH_FUNCTIONS if functions is None else functions)

    def parse(self, expression: str) -> ast.Expression:
        if not expression or not expression.strip():
            raise ExpressionError("Empty expression")
        try:
            tree = ast.parse(expression.strip(), mode="eval")
        except SyntaxError as exc:
            raise ExpressionError(f"Invalid expression: {exc.msg}") from exc
        return tree

    def free_names(self, expression: str) -> set[str]:
        """Return the variable names an expression refers to."""
        tree = self.parse(expression)
        called = {
            node.func.id
            for node in ast.walk(tree)
            if isinstance(node, ast.Call) and isinstance(node.func, ast.Name)
        }
        return {
            node.id
            for node in ast.walk(tree)
            if isinstance(node, ast.Name) and node.id not in called
        }

    def validate(self, expression: str) -> None:
        """Check an expression's structure and names without evaluating it.

        Raises:
            ExpressionError: On unsupported syntax, calls to functions outside
                the whitelist, or names that are not defined.
        """
        tree = self.parse(expression)
        for node in ast.walk(tree):
            if isinstance(node, ast.Constant):
                if not isinstance(node.value, (bool, int, float)):
                    raise ExpressionError(f"Unsupported literal: {node.value!r}")
            elif isinstance(node, ast.BinOp):
                if type(node.op) not in _BINARY_OPS:
                    raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")
            elif isinstance(node, ast.UnaryOp):
                if type(node.op) not in _UNARY_OPS:
                    raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")
            elif isinstance(node, ast.Compare):
                for op_node in node.ops:
                    if type(op_node) not in _COMPARE_OPS:
                        raise ExpressionError(
                            f"Unsupported comparison: {type(op_node).__name__}"
                        )
            elif isinstance(node, ast.Call):
                if not isinstance(node.func, ast.Name) or node.func.id not in self.functions:
                    raise ExpressionError("Only whitelisted functions may be called")
                if node.keywords:
                    raise ExpressionError("Keyword arguments are not supported")
            elif not isinstance(
                node,
                (ast.Expression, ast.Name, ast.Load, ast.BoolOp, ast.boolop,
                 ast.operator, ast.unaryop, ast.cmpop),
            ):
                raise ExpressionError(f"Unsupported syntax: {type(node).__name__}")

        unknown = self.free_names(expression) - set(self.names)
        if unknown:
            raise ExpressionError(f"Unknown names in expression: {sorted(unknown)}")

    def evaluate(self, expression: str) -> Any:
        tree = self.parse(expression)
        try:
            return self._eval(tree.body)
        except ExpressionError:
            raise
        except (ArithmeticError, ValueError, TypeError) as exc:
            raise ExpressionError(str(exc)) from exc

    def _eval(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or isinstance(node.value, (int, float)):
                return node.value
            raise ExpressionError(f"Unsupported literal: {node.value!r}")

        if isinstance(node, ast.Name):
            if node.id in self.names:
                return self.names[node.id]
            raise ExpressionError(f"Unknown name: {node.id}")

        if isinstance(node, ast.BinOp):
            op = _BINARY_OPS.get(type(node.op))
            if op is None:
                raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")
            left = self._eval(node.left)
            right = self._eval(node.right)
            if op is operator.pow:
                _check_power(left, right)
            return op(left, right)

        if isinstance(node, ast.UnaryOp):
            op = _UNARY_OPS.get(type(node.op))
            if op is None:
                raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")
            return op(self._eval(node.operand))

        if isinstance(node, ast.BoolOp):
            values = [self._eval(v) for v in node.values]
            if isinstance(node.op, ast.And):
                return all(values)
            return any(values)

        if isinstance(node, ast.Compare):
            left = self._eval(node.left)
            for op_node, comparator in zip(node.ops, node.comparators):
                op = _COMPARE_OPS.get(type(op_node))
                if op is None:
                    raise ExpressionError(
                        f"Unsupported comparison: {type(op_node).__name__}"
                    )
                right = self._eval(comparator)
                if not op(left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in self.functions:
                raise ExpressionError("Only whitelisted functions may be called")
            if node.keywords:
                raise ExpressionError("Keyword arguments are not supported")
            args = [self._eval(arg) for arg in node.args]
            return self.functions[node.func.id](*args)

        raise ExpressionError(f"Unsupported syntax: {type(node).__name__}")


def evaluate_expression(expression: str, names: Mapping[str, Any] | None = None) -> Any:
    """Evaluate an arithmetic expression with the default math whitelist."""
    return SafeEvaluator(names).evaluate(expression)
