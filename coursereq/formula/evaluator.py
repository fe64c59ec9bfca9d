"""Pure evaluation of parsed bonus formulas."""

from __future__ import annotations

import math
from typing import Any, Dict, Mapping

from coursereq.core.errors import (
    DivisionByZeroError,
    FormulaError,
    NumericOverflowError,
    UnboundVariableError,
)

from .nodes import BinaryOp, Call, GroupSum, Literal, Node, TaskRef, UnaryOp
from .parser import parse

Number = float | int


def normalize_bindings(bindings: Mapping[Any, Number]) -> Dict[str, Number]:
    """Key bindings by string task id so ``{1: 40}`` and ``{"1": 40}`` are equivalent."""
    normalized: Dict[str, Number] = {}
    for key, value in bindings.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise FormulaError(f"Binding for task({key}) must be a number, got {type(value).__name__}")
        normalized[str(key).strip()] = value
    return normalized


def evaluate_node(node: Node, bindings: Mapping[str, Number]) -> Number:
    """Recursively evaluate ``node`` against string-keyed ``bindings``."""
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, TaskRef):
        if node.task_id not in bindings:
            raise UnboundVariableError(node.task_id)
        return bindings[node.task_id]
    if isinstance(node, UnaryOp):
        operand = evaluate_node(node.operand, bindings)
        return -operand if node.op == "-" else operand
    if isinstance(node, BinaryOp):
        left = evaluate_node(node.left, bindings)
        right = evaluate_node(node.right, bindings)
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            return left * right
        if right == 0:
            raise DivisionByZeroError(f"Division by zero at position {node.position}")
        return left / right
    if isinstance(node, Call):
        values = [evaluate_node(arg, bindings) for arg in node.args]
        if node.name == "min":
            return min(values)
        if node.name == "max":
            return max(values)
        return math.fsum(values) if any(isinstance(value, float) for value in values) else sum(values)
    if isinstance(node, GroupSum):
        values = [bindings[key] for key in sorted(bindings)]
        return math.fsum(values) if any(isinstance(value, float) for value in values) else sum(values)
    raise FormulaError(f"Unsupported formula node {type(node).__name__}")


def evaluate(formula: str, bindings: Mapping[Any, Number]) -> Number:
    """Parse and evaluate ``formula``; identical inputs always give identical results.

    Results must be representable as a finite float, so integer arithmetic that
    outgrows a float is rejected like an infinite float result.
    """
    tree = parse(formula)
    try:
        result = evaluate_node(tree, normalize_bindings(bindings))
        finite = math.isfinite(result)
    except OverflowError as exc:
        raise NumericOverflowError(f"Formula value is too large: {exc}") from exc
    if not finite:
        raise NumericOverflowError(f"Formula produced a non-finite value: {result}")
    return result


__all__ = ["Number", "evaluate", "evaluate_node", "normalize_bindings"]
