"""
Foundational errors, policies, and audit logging for the requirement engine.

Configuration loading lives in ``coursereq.core.config``; it is not re-exported
here because it depends on the store models.
"""

from .errors import (
    DivisionByZeroError,
    ForbiddenError,
    FormulaError,
    InvalidValueError,
    NotFoundError,
    NumericOverflowError,
    ParseError,
    RequirementEngineError,
    UnboundVariableError,
)
from .policy import AggregationPolicy, parse_aggregation_flag
from .provenance import MutationEvent, ProvenanceLogger

__all__ = [
    "AggregationPolicy",
    "DivisionByZeroError",
    "ForbiddenError",
    "FormulaError",
    "InvalidValueError",
    "MutationEvent",
    "NotFoundError",
    "NumericOverflowError",
    "ParseError",
    "ProvenanceLogger",
    "RequirementEngineError",
    "UnboundVariableError",
    "parse_aggregation_flag",
]
