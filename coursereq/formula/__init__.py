"""Bonus-formula language: parser, expression tree, and evaluator."""

from .evaluator import evaluate, evaluate_node, normalize_bindings
from .nodes import BinaryOp, Call, GroupSum, Literal, Node, TaskRef, UnaryOp
from .parser import parse, referenced_tasks

__all__ = [
    "BinaryOp",
    "Call",
    "GroupSum",
    "Literal",
    "Node",
    "TaskRef",
    "UnaryOp",
    "evaluate",
    "evaluate_node",
    "normalize_bindings",
    "parse",
    "referenced_tasks",
]
