"""Scoring aggregator and the derived course results view."""

from .aggregator import (
    Verdict,
    VerdictState,
    best_scores,
    bindings_for,
    group_results_by_student,
    score_course,
    score_group,
    score_student,
)
from .results_view import CourseResultsView, StudentRow, build_results_view, export_csv, total_bonus

__all__ = [
    "CourseResultsView",
    "StudentRow",
    "Verdict",
    "VerdictState",
    "best_scores",
    "bindings_for",
    "build_results_view",
    "export_csv",
    "group_results_by_student",
    "score_course",
    "score_group",
    "score_student",
    "total_bonus",
]
