"""Course results matrix: one row per student, derived from verdicts only."""

from __future__ import annotations

import csv
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from coursereq.core.config import ResultsViewConfig
from coursereq.core.policy import AggregationPolicy
from coursereq.store.models import SubmissionResult, Task

from .aggregator import Verdict, VerdictState, best_scores


@dataclass(frozen=True, slots=True)
class GroupCell:
    group_id: str
    group_name: str
    state: VerdictState
    bonus: Optional[float]
    hide_points: bool = False

    @property
    def passed(self) -> bool:
        return self.state is VerdictState.PASSED

    @property
    def display_bonus(self) -> Optional[float]:
        """Bonus as shown to users; hidden groups still count towards the total."""
        return None if self.hide_points else self.bonus


@dataclass(frozen=True, slots=True)
class StudentRow:
    student_id: str
    cells: tuple[GroupCell, ...]
    total_bonus: Optional[float]
    passed_all: bool
    task_scores: Mapping[str, Optional[float]] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TaskColumn:
    task_id: str
    name: str
    max_score: float


@dataclass(frozen=True, slots=True)
class CourseResultsView:
    course_id: str
    groups: tuple[tuple[str, str], ...]
    rows: tuple[StudentRow, ...]
    task_columns: tuple[TaskColumn, ...] = ()
    aggregation: AggregationPolicy = AggregationPolicy.SUM_PASSING

    def row(self, student_id: str) -> StudentRow:
        for row in self.rows:
            if row.student_id == student_id:
                return row
        raise KeyError(student_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "course_id": self.course_id,
            "aggregation": self.aggregation.value,
            "groups": [{"id": group_id, "name": name} for group_id, name in self.groups],
            "tasks": [
                {"id": column.task_id, "name": column.name, "max_score": column.max_score}
                for column in self.task_columns
            ],
            "rows": [
                {
                    "student_id": row.student_id,
                    "total_bonus": row.total_bonus,
                    "passed_all": row.passed_all,
                    "groups": {
                        cell.group_id: {"state": cell.state.value, "bonus": cell.display_bonus}
                        for cell in row.cells
                    },
                    "tasks": dict(row.task_scores),
                }
                for row in self.rows
            ],
        }


def total_bonus(verdicts: Sequence[Verdict], policy: AggregationPolicy) -> float:
    """Sum of passing bonuses, or all-or-nothing when every group must pass."""
    if policy is AggregationPolicy.ALL_OR_NOTHING:
        if not all(verdict.passed for verdict in verdicts):
            return 0.0
        return math.fsum(float(verdict.value or 0) for verdict in verdicts)
    return math.fsum(float(verdict.value or 0) for verdict in verdicts if verdict.passed)


def _cell(verdict: Verdict) -> GroupCell:
    bonus = None if verdict.value is None else float(verdict.value)
    return GroupCell(
        group_id=verdict.group_id,
        group_name=verdict.group_name,
        state=verdict.state,
        bonus=bonus,
        hide_points=verdict.hide_points,
    )


def build_results_view(
    course_id: str,
    verdicts_by_student: Mapping[str, Sequence[Verdict]],
    config: ResultsViewConfig | None = None,
    *,
    tasks: Sequence[Task] = (),
    results_by_student: Mapping[str, Sequence[SubmissionResult]] | None = None,
) -> CourseResultsView:
    """Project verdicts into the results matrix; students are ordered by id."""
    config = config or ResultsViewConfig()
    policy = AggregationPolicy(config.aggregation)

    groups: List[tuple[str, str]] = []
    for verdicts in verdicts_by_student.values():
        for verdict in verdicts:
            entry = (verdict.group_id, verdict.group_name)
            if entry not in groups:
                groups.append(entry)

    columns = tuple(TaskColumn(task.id, task.name or task.id, task.max_score) for task in tasks) if config.include_details else ()

    rows: List[StudentRow] = []
    for student_id in sorted(verdicts_by_student):
        verdicts = list(verdicts_by_student[student_id])
        task_scores: Dict[str, Optional[float]] = {}
        if config.include_details:
            scores = best_scores(student_id, (results_by_student or {}).get(student_id, ()))
            task_scores = {column.task_id: scores.get(column.task_id) for column in columns}
        rows.append(
            StudentRow(
                student_id=student_id,
                cells=tuple(_cell(verdict) for verdict in verdicts),
                total_bonus=total_bonus(verdicts, policy) if config.show_bonus else None,
                passed_all=all(verdict.passed for verdict in verdicts),
                task_scores=task_scores,
            )
        )

    return CourseResultsView(
        course_id=str(course_id),
        groups=tuple(groups),
        rows=tuple(rows),
        task_columns=columns,
        aggregation=policy,
    )


def _format_number(value: Optional[float]) -> str:
    if value is None:
        return ""
    return f"{value:g}"


def export_csv(view: CourseResultsView, path: Path) -> Path:
    """Write the matrix as CSV: student, one column per group, optional task columns, total."""
    path.parent.mkdir(parents=True, exist_ok=True)
    header = ["student_id"]
    header.extend(name for _, name in view.groups)
    header.extend(column.name for column in view.task_columns)
    header.extend(["passed_all", "total_bonus"])

    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(header)
        for row in view.rows:
            by_group = {cell.group_id: cell for cell in row.cells}
            line = [row.student_id]
            for group_id, _ in view.groups:
                cell = by_group.get(group_id)
                if cell is None:
                    line.append("")
                elif cell.state is VerdictState.UNEVALUABLE:
                    line.append("unevaluable")
                else:
                    shown = cell.display_bonus
                    line.append(cell.state.value if shown is None else f"{cell.state.value} ({_format_number(shown)})")
            line.extend(_format_number(row.task_scores.get(column.task_id)) for column in view.task_columns)
            line.append("yes" if row.passed_all else "no")
            line.append(_format_number(row.total_bonus))
            writer.writerow(line)
    return path


__all__ = [
    "CourseResultsView",
    "GroupCell",
    "StudentRow",
    "TaskColumn",
    "build_results_view",
    "export_csv",
    "total_bonus",
]
