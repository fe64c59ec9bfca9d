"""Helpers for choosing how the results matrix totals bonus points."""

from __future__ import annotations

from enum import Enum
from typing import List


class AggregationPolicy(str, Enum):
    """Named totals supported by the results view and the CLI."""

    SUM_PASSING = "sum-passing"
    ALL_OR_NOTHING = "all-or-nothing"

    @classmethod
    def choices(cls) -> List[str]:
        return [member.value for member in cls]


def parse_aggregation_flag(flag_value: str | None) -> AggregationPolicy:
    """
    Convert a CLI flag into an AggregationPolicy.

    Examples
    --------
    - ``None`` or empty string → ``sum-passing``.
    - ``all-or-nothing`` / ``all_or_nothing`` → every group must pass.
    """
    if not flag_value or not flag_value.strip():
        return AggregationPolicy.SUM_PASSING

    token = flag_value.strip().lower().replace("_", "-")
    try:
        return AggregationPolicy(token)
    except ValueError as exc:
        valid = ", ".join(AggregationPolicy.choices())
        raise ValueError(f"Unknown aggregation '{flag_value}'. Valid options: {valid}") from exc


__all__ = ["AggregationPolicy", "parse_aggregation_flag"]
