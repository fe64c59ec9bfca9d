"""Host-facing facade: queries, mutations, and formula validation in one place."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from coursereq.collaborators import (
    InMemoryResultSupplier,
    InMemoryTaskRegistry,
    SubmissionResultSupplier,
    TaskRegistry,
)
from coursereq.core.config import CourseFixture, EngineConfig, ResultsViewConfig
from coursereq.core.errors import ParseError
from coursereq.core.provenance import ProvenanceLogger
from coursereq.formula.parser import referenced_tasks
from coursereq.scoring.aggregator import Verdict, score_student
from coursereq.scoring.results_view import CourseResultsView, build_results_view
from coursereq.store.authorization import EditGate, RoleAuthorization, allow_all
from coursereq.store.models import CourseSnapshot, RequirementGroup, SubmissionResult
from coursereq.store.requirement_store import MoveOutcome, RequirementStore

LOGGER = logging.getLogger(__name__)


@dataclass
class FormulaCheck:
    """Outcome of validating a formula at edit time."""

    valid: bool
    error: Optional[ParseError] = None
    warnings: List[str] = field(default_factory=list)
    referenced: FrozenSet[str] = frozenset()

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def raise_if_invalid(self) -> None:
        if self.error is not None:
            raise self.error


def validate_formula(formula: str) -> FormulaCheck:
    """Parse-only check used by edit forms before ``update_formula``."""
    try:
        referenced = referenced_tasks(formula)
    except ParseError as exc:
        return FormulaCheck(valid=False, error=exc)
    return FormulaCheck(valid=True, referenced=referenced)


class RequirementService:
    """Wires the store, the aggregator, and the external collaborators together."""

    def __init__(
        self,
        store: RequirementStore | None = None,
        *,
        results: SubmissionResultSupplier | None = None,
        tasks: TaskRegistry | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.store = store or RequirementStore()
        self.results = results or InMemoryResultSupplier()
        self.tasks = tasks or InMemoryTaskRegistry()
        self.provenance: ProvenanceLogger | None = None
        if self.config.audit.enabled:
            self.provenance = ProvenanceLogger(self.config.audit.path)
            self.store.subscribe(self.provenance.as_listener())

    @classmethod
    def from_fixture(
        cls,
        fixture: CourseFixture,
        *,
        config: EngineConfig | None = None,
        can_edit_course: EditGate | None = None,
    ) -> "RequirementService":
        """Build a service seeded with the fixture's groups, tasks, and results."""
        if can_edit_course is None:
            can_edit_course = RoleAuthorization(fixture.roles) if fixture.roles else allow_all
        store = RequirementStore(can_edit_course)
        groups = tuple(
            RequirementGroup(
                id=f"g{index}",
                name=requirement.name,
                tasks=tuple(requirement.tasks),
                formula=requirement.formula,
                threshold=requirement.threshold,
                hide_points=requirement.hide_points,
                created_seq=index,
            )
            for index, requirement in enumerate(fixture.requirements, start=1)
        )
        store.restore(CourseSnapshot(course_id=fixture.course_id, version=0, groups=groups))
        LOGGER.info("Seeded course %s with %d requirement group(s)", fixture.course_id, len(groups))
        return cls(
            store,
            results=InMemoryResultSupplier({fixture.course_id: fixture.results}),
            tasks=InMemoryTaskRegistry({fixture.course_id: fixture.tasks}),
            config=config,
        )

    # ------------------------------------------------------------------
    # Queries

    def list_groups(self, course_id: str) -> Sequence[RequirementGroup]:
        return self.store.list_groups(course_id)

    def unassigned_tasks(self, course_id: str) -> List[str]:
        snapshot = self.store.snapshot(course_id)
        return snapshot.unassigned(task.id for task in self.tasks.tasks_for(course_id))

    def score_student(
        self,
        course_id: str,
        student_id: str,
        results: Sequence[SubmissionResult] | None = None,
    ) -> List[Verdict]:
        """Verdicts for one student; results are fetched from the supplier when omitted."""
        if results is None:
            results = self.results.results_for(str(course_id), str(student_id))
        snapshot = self.store.snapshot(course_id)
        return score_student(snapshot, student_id, results)

    def course_results(
        self,
        course_id: str,
        student_ids: Iterable[str],
        config: ResultsViewConfig | None = None,
    ) -> CourseResultsView:
        """Results matrix for ``student_ids`` against one consistent snapshot."""
        config = config or self.config.results
        course_id = str(course_id)
        results_by_student: Dict[str, Sequence[SubmissionResult]] = {
            str(student_id): self.results.results_for(course_id, str(student_id)) for student_id in student_ids
        }
        snapshot = self.store.snapshot(course_id)
        verdicts = {
            student_id: score_student(snapshot, student_id, results)
            for student_id, results in results_by_student.items()
        }
        return build_results_view(
            course_id,
            verdicts,
            config,
            tasks=self.tasks.tasks_for(course_id),
            results_by_student=results_by_student,
        )

    # ------------------------------------------------------------------
    # Validation

    def validate_formula(self, formula: str) -> FormulaCheck:
        return validate_formula(formula)

    def check_group_formula(self, course_id: str, group_id: str, formula: str) -> FormulaCheck:
        """Like ``validate_formula`` but warns about tasks the group does not contain."""
        check = validate_formula(formula)
        if not check.valid:
            return check
        group = self.store.snapshot(course_id).group(group_id)
        outside = sorted(check.referenced - set(group.tasks))
        if outside:
            check.warnings.append(
                f"Formula references tasks outside '{group.name}': {', '.join(outside)}"
            )
        return check

    # ------------------------------------------------------------------
    # Mutations

    def add_group(
        self,
        course_id: str,
        name: str,
        formula: str = "",
        threshold: float = 0.0,
        *,
        hide_points: bool = False,
        group_id: str | None = None,
    ) -> RequirementGroup:
        return self.store.add_group(
            course_id, name, formula, threshold, hide_points=hide_points, group_id=group_id
        )

    def remove_group(self, course_id: str, group_id: str) -> RequirementGroup:
        return self.store.remove_group(course_id, group_id)

    def move_task(
        self, course_id: str, task_id: str, from_group_id: str | None, to_group_id: str, at_index: int
    ) -> MoveOutcome:
        return self.store.move_task(course_id, task_id, from_group_id, to_group_id, at_index)

    def update_formula(self, course_id: str, group_id: str, formula: str) -> RequirementGroup:
        return self.store.update_formula(course_id, group_id, formula)

    def update_threshold(self, course_id: str, group_id: str, threshold: float) -> RequirementGroup:
        return self.store.update_threshold(course_id, group_id, threshold)

    def rename_group(self, course_id: str, group_id: str, name: str) -> RequirementGroup:
        return self.store.rename_group(course_id, group_id, name)

    def set_hide_points(self, course_id: str, group_id: str, hide_points: bool) -> RequirementGroup:
        return self.store.set_hide_points(course_id, group_id, hide_points)


__all__ = ["FormulaCheck", "RequirementService", "validate_formula"]
