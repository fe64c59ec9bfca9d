"""Expression tree for bonus formulas."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

WHITELISTED_FUNCTIONS: Tuple[str, ...] = ("min", "max", "sum")
BINARY_OPERATORS: Tuple[str, ...] = ("+", "-", "*", "/")


@dataclass(frozen=True, slots=True)
class Literal:
    value: float | int
    position: int = 0


@dataclass(frozen=True, slots=True)
class TaskRef:
    task_id: str
    position: int = 0


@dataclass(frozen=True, slots=True)
class UnaryOp:
    op: str
    operand: "Node"
    position: int = 0


@dataclass(frozen=True, slots=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"
    position: int = 0


@dataclass(frozen=True, slots=True)
class Call:
    """Whitelisted aggregate over one or more argument expressions."""

    name: str
    args: Tuple["Node", ...]
    position: int = 0


@dataclass(frozen=True, slots=True)
class GroupSum:
    """Implicit formula of a group whose formula text is blank."""

    position: int = 0


Node = Union[Literal, TaskRef, UnaryOp, BinaryOp, Call, GroupSum]


def iter_task_refs(node: Node):
    """Yield every ``TaskRef`` in the tree, depth first."""
    if isinstance(node, TaskRef):
        yield node
    elif isinstance(node, UnaryOp):
        yield from iter_task_refs(node.operand)
    elif isinstance(node, BinaryOp):
        yield from iter_task_refs(node.left)
        yield from iter_task_refs(node.right)
    elif isinstance(node, Call):
        for arg in node.args:
            yield from iter_task_refs(arg)


__all__ = [
    "BINARY_OPERATORS",
    "BinaryOp",
    "Call",
    "GroupSum",
    "Literal",
    "Node",
    "TaskRef",
    "UnaryOp",
    "WHITELISTED_FUNCTIONS",
    "iter_task_refs",
]
