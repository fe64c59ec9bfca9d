"""Exception taxonomy shared by the formula, store, and scoring layers."""

from __future__ import annotations

from typing import Any


class RequirementEngineError(Exception):
    """Base class for every error raised by the engine."""


class FormulaError(RequirementEngineError):
    """Raised when a bonus formula cannot be parsed or evaluated."""


class ParseError(FormulaError):
    """Malformed formula syntax (unbalanced parens, unknown token, ...)."""

    def __init__(self, message: str, *, position: int, formula: str) -> None:
        self.position = position
        self.formula = formula
        self.reason = message
        super().__init__(f"{message} at position {position}")


class UnboundVariableError(FormulaError):
    """A formula referenced a task that has no binding."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"task({task_id}) is not bound")


class DivisionByZeroError(FormulaError):
    """Division by a denominator that evaluated to zero."""


class NumericOverflowError(FormulaError):
    """The formula's value does not fit a finite float."""


class NotFoundError(RequirementEngineError, LookupError):
    """Unknown course, group, or task identifier."""

    def __init__(self, kind: str, identifier: Any) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"Unknown {kind} '{identifier}'")


class ForbiddenError(RequirementEngineError, PermissionError):
    """The edit gate rejected a mutation for this course."""

    def __init__(self, course_id: str) -> None:
        self.course_id = course_id
        super().__init__(f"Editing requirements of course '{course_id}' is not allowed")


class InvalidValueError(RequirementEngineError, ValueError):
    """A mutation carried a value the store cannot accept."""


__all__ = [
    "DivisionByZeroError",
    "ForbiddenError",
    "FormulaError",
    "InvalidValueError",
    "NotFoundError",
    "NumericOverflowError",
    "ParseError",
    "RequirementEngineError",
    "UnboundVariableError",
]
