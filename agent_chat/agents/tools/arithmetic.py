"""Calculator and linear equation solver tools.

Expressions are parsed with :mod:`ast` and only numeric literals, the four
basic operators, floor division, modulo, powers and unary signs are
evaluated. Anything else (names, calls, attribute access) is rejected.
"""

import ast
from dataclasses import dataclass
import math
import operator
import re
from typing import Any

from agent_chat.agents.tools.toolbox import Tool, define_tool

Number = int | float

_MAX_EXPONENT = 1000
# Kept below the interpreter's 4300-digit int-to-str limit.
_MAX_RESULT_BITS = 13_000
_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPERATORS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
_IMPLICIT_PRODUCT = re.compile(r"(\d|\))\s*(?=[A-Za-z(])")


def _normalize(expression: str) -> str:
    return expression.replace("^", "**").replace("×", "*").replace("÷", "/").strip()


def _parse(expression: str) -> ast.expr:
    try:
        return ast.parse(_normalize(expression), mode="eval").body
    except SyntaxError as exc:
        raise ValueError("Invalid expression") from exc


def _literal(node: ast.expr) -> Number | None:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    return None


def _bounded(value: Number) -> Number:
    if isinstance(value, int) and value.bit_length() > _MAX_RESULT_BITS:
        raise ValueError("Result is too large")
    return value


def _check_power(base: Number, exponent: Number) -> None:
    if abs(exponent) > _MAX_EXPONENT:
        raise ValueError("Exponent is too large")
    # Upper bound on the bits of an integer power, checked before computing it.
    if isinstance(base, int) and isinstance(exponent, int) and exponent > 0:
        if abs(base).bit_length() * exponent > _MAX_RESULT_BITS:
            raise ValueError("Result is too large")


def _evaluate(node: ast.expr) -> Number:
    value = _literal(node)
    if value is not None:
        return _bounded(value)
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        left = _evaluate(node.left)
        right = _evaluate(node.right)
        if isinstance(node.op, ast.Pow):
            _check_power(left, right)
        return _bounded(_BINARY_OPERATORS[type(node.op)](left, right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_evaluate(node.operand))
    raise ValueError("Unsupported expression")


def format_number(value: Number) -> Number:
    """Collapse integral floats to ``int`` and trim binary noise from the rest."""

    if isinstance(value, float):
        rounded = round(value, 10)
        return int(rounded) if rounded.is_integer() else rounded
    return value


def evaluate_expression(expression: str) -> Number:
    value = _evaluate(_parse(expression))
    if isinstance(value, complex) or (isinstance(value, float) and not math.isfinite(value)):
        raise ValueError("Result is not a finite number")
    return format_number(value)


def calculate(expression: str) -> dict[str, Any]:
    """Evaluate an arithmetic expression.

    Args:
        expression: Mathematical expression to evaluate (e.g. "2 + 3 * 4").
    """

    try:
        result = evaluate_expression(expression)
        return {
            "expression": expression,
            "result": result,
            "explanation": f"The result of {expression} is {result}",
        }
    except (ValueError, ArithmeticError, RecursionError) as exc:
        return {"error": "Failed to calculate expression", "message": str(exc), "expression": expression}


@dataclass(frozen=True)
class _Linear:
    """``coefficient * variable + constant``."""

    coefficient: float
    constant: float

    def __add__(self, other: "_Linear") -> "_Linear":
        return _Linear(self.coefficient + other.coefficient, self.constant + other.constant)

    def scale(self, factor: float) -> "_Linear":
        return _Linear(self.coefficient * factor, self.constant * factor)


def _linear(node: ast.expr, variable: str) -> _Linear:
    value = _literal(node)
    if value is not None:
        return _Linear(0.0, float(value))
    if isinstance(node, ast.Name):
        if node.id.lower() != variable.lower():
            raise ValueError(f"Equation contains variable {node.id}, but solving for {variable}")
        return _Linear(1.0, 0.0)
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.UAdd, ast.USub)):
        operand = _linear(node.operand, variable)
        return operand.scale(-1.0) if isinstance(node.op, ast.USub) else operand
    if isinstance(node, ast.BinOp):
        left = _linear(node.left, variable)
        right = _linear(node.right, variable)
        if isinstance(node.op, ast.Add):
            return left + right
        if isinstance(node.op, ast.Sub):
            return left + right.scale(-1.0)
        if isinstance(node.op, ast.Mult):
            if left.coefficient and right.coefficient:
                raise ValueError("Only linear equations are supported")
            return right.scale(left.constant) if not left.coefficient else left.scale(right.constant)
        if isinstance(node.op, ast.Div):
            if right.coefficient:
                raise ValueError("Only linear equations are supported")
            if not right.constant:
                raise ValueError("division by zero")
            return left.scale(1.0 / right.constant)
    raise ValueError("Unsupported equation")


def _parse_side(side: str, variable: str) -> _Linear:
    prepared = _IMPLICIT_PRODUCT.sub(r"\1*", _normalize(side))
    return _linear(_parse(prepared), variable)


def solve_equation(equation: str, variable: str = "x") -> dict[str, Any]:
    """Solve a linear equation in one variable.

    Args:
        equation: Mathematical equation to solve (e.g. "2x + 5 = 13").
        variable: Variable to solve for.
    """

    try:
        sides = equation.split("=")
        if len(sides) != 2:
            raise ValueError("Equation must have exactly one equals sign")
        left = _parse_side(sides[0], variable)
        right = _parse_side(sides[1], variable)

        coefficient = left.coefficient - right.coefficient
        constant = right.constant - left.constant
        if not coefficient:
            raise ValueError("Equation has no unique solution")
        solution = format_number(constant / coefficient)
        return {
            "equation": equation,
            "variable": variable,
            "solution": solution,
            "steps": [
                f"Original equation: {equation.strip()}",
                f"Collect terms: {format_number(coefficient)}{variable} = {format_number(constant)}",
                f"Divide by {format_number(coefficient)}: {variable} = {solution}",
            ],
        }
    except (ValueError, ArithmeticError, RecursionError) as exc:
        return {"error": "Failed to solve equation", "message": str(exc), "equation": equation}


def build_math_tools() -> list[Tool]:
    return [
        define_tool(
            calculate,
            tool_id="calculator",
            name="Calculator",
            description="Performs basic mathematical operations (addition, subtraction, multiplication, division)",
        ),
        define_tool(
            solve_equation,
            tool_id="equation_solver",
            name="Equation Solver",
            description="Solves linear equations in one variable and shows the solution steps",
        ),
    ]
