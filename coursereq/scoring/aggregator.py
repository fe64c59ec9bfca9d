"""Per-student verdicts for every requirement group of a course."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from coursereq.core.errors import FormulaError
from coursereq.formula.evaluator import Number, evaluate
from coursereq.store.models import CourseSnapshot, RequirementGroup, SubmissionResult

LOGGER = logging.getLogger(__name__)


class VerdictState(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    UNEVALUABLE = "unevaluable"


@dataclass(frozen=True, slots=True)
class Verdict:
    """Outcome of one student against one requirement group.

    ``inputs`` holds the bindings the formula was evaluated with. For
    ``UNEVALUABLE`` verdicts ``value`` is ``None`` and ``error`` carries the
    formula failure.
    """

    student_id: str
    group_id: str
    group_name: str
    state: VerdictState
    value: Optional[Number]
    threshold: float
    inputs: Mapping[str, Number] = field(default_factory=dict)
    error: Optional[FormulaError] = None
    hide_points: bool = False

    @property
    def passed(self) -> bool:
        return self.state is VerdictState.PASSED

    @property
    def evaluable(self) -> bool:
        return self.state is not VerdictState.UNEVALUABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "group_id": self.group_id,
            "group_name": self.group_name,
            "state": self.state.value,
            "value": self.value,
            "threshold": self.threshold,
            "inputs": dict(self.inputs),
            "error": None if self.error is None else {"type": type(self.error).__name__, "message": str(self.error)},
        }


def best_scores(student_id: str, results: Iterable[SubmissionResult]) -> Dict[str, float]:
    """Best achieved score per task for ``student_id``; other students' results are ignored."""
    scores: Dict[str, float] = {}
    for result in results:
        if result.student_id != student_id:
            continue
        previous = scores.get(result.task_id)
        if previous is None or result.score > previous:
            scores[result.task_id] = result.score
    return scores


def bindings_for(group: RequirementGroup, scores: Mapping[str, float]) -> Dict[str, Number]:
    """Bind every task of the group; a task without a result binds to 0."""
    return {task_id: scores.get(task_id, 0) for task_id in group.tasks}


def score_group(student_id: str, group: RequirementGroup, scores: Mapping[str, float]) -> Verdict:
    """Evaluate one group. An empty group is worth 0 and passes only when threshold <= 0."""
    inputs = bindings_for(group, scores)
    base = dict(
        student_id=student_id,
        group_id=group.id,
        group_name=group.name,
        threshold=group.threshold,
        inputs=inputs,
        hide_points=group.hide_points,
    )
    if not group.tasks:
        state = VerdictState.PASSED if 0 >= group.threshold else VerdictState.FAILED
        return Verdict(state=state, value=0, **base)
    try:
        value = evaluate(group.formula, inputs)
    except FormulaError as exc:
        LOGGER.warning(
            "Requirement %s (%s) is unevaluable for student %s: %s",
            group.id,
            group.name,
            student_id,
            exc,
        )
        return Verdict(state=VerdictState.UNEVALUABLE, value=None, error=exc, **base)
    state = VerdictState.PASSED if value >= group.threshold else VerdictState.FAILED
    return Verdict(state=state, value=value, **base)


def score_student(
    snapshot: CourseSnapshot,
    student_id: str,
    results: Sequence[SubmissionResult],
) -> List[Verdict]:
    """Verdicts for every group of the snapshot, in group-creation order."""
    student_id = str(student_id)
    scores = best_scores(student_id, results)
    ordered = sorted(snapshot.groups, key=lambda group: group.created_seq)
    return [score_group(student_id, group, scores) for group in ordered]


def score_course(
    snapshot: CourseSnapshot,
    results_by_student: Mapping[str, Sequence[SubmissionResult]],
) -> Dict[str, List[Verdict]]:
    """Score several students against the same snapshot."""
    return {
        str(student_id): score_student(snapshot, student_id, results)
        for student_id, results in results_by_student.items()
    }


def group_results_by_student(results: Iterable[SubmissionResult]) -> Dict[str, List[SubmissionResult]]:
    grouped: Dict[str, List[SubmissionResult]] = {}
    for result in results:
        grouped.setdefault(result.student_id, []).append(result)
    return grouped


__all__ = [
    "Verdict",
    "VerdictState",
    "best_scores",
    "bindings_for",
    "group_results_by_student",
    "score_course",
    "score_group",
    "score_student",
]
