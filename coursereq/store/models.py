"""Value objects for tasks, requirement groups, and course snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coursereq.core.errors import NotFoundError


class Task(BaseModel):
    """Reference data owned by the course service; the engine only reads it."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    max_score: float = Field(default=0.0, ge=0.0)

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> Any:
        return str(value).strip() if isinstance(value, (int, str)) else value


class SubmissionResult(BaseModel):
    """Achieved score of one student on one task."""

    model_config = ConfigDict(frozen=True)

    student_id: str
    task_id: str
    score: float

    @field_validator("student_id", "task_id", mode="before")
    @classmethod
    def stringify_ids(cls, value: Any) -> Any:
        return str(value).strip() if isinstance(value, (int, str)) else value


@dataclass(frozen=True, slots=True)
class RequirementGroup:
    """A named, ordered subset of a course's tasks with threshold and bonus formula."""

    id: str
    name: str
    tasks: Tuple[str, ...] = ()
    formula: str = ""
    threshold: float = 0.0
    hide_points: bool = False
    created_seq: int = 0

    def with_tasks(self, tasks: Iterable[str]) -> "RequirementGroup":
        return replace(self, tasks=tuple(tasks))

    def index_of(self, task_id: str) -> int:
        try:
            return self.tasks.index(task_id)
        except ValueError:
            return -1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "tasks": list(self.tasks),
            "formula": self.formula,
            "threshold": self.threshold,
            "hide_points": self.hide_points,
        }


@dataclass(frozen=True, slots=True)
class CourseSnapshot:
    """Immutable view of one course's groups, published after every applied mutation.

    Groups are kept in creation order, which is also the scoring order.
    """

    course_id: str
    version: int = 0
    groups: Tuple[RequirementGroup, ...] = field(default_factory=tuple)

    def group(self, group_id: str) -> RequirementGroup:
        for group in self.groups:
            if group.id == group_id:
                return group
        raise NotFoundError("requirement group", group_id)

    def has_group(self, group_id: str) -> bool:
        return any(group.id == group_id for group in self.groups)

    def locate(self, task_id: str) -> Optional[Tuple[RequirementGroup, int]]:
        """Return ``(group, index)`` holding ``task_id`` or ``None`` when unassigned."""
        for group in self.groups:
            index = group.index_of(task_id)
            if index >= 0:
                return group, index
        return None

    def assigned_task_ids(self) -> List[str]:
        return [task_id for group in self.groups for task_id in group.tasks]

    def unassigned(self, task_ids: Iterable[str]) -> List[str]:
        assigned = set(self.assigned_task_ids())
        return [task_id for task_id in task_ids if task_id not in assigned]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "course_id": self.course_id,
            "version": self.version,
            "groups": [group.to_dict() for group in self.groups],
        }


__all__ = ["CourseSnapshot", "RequirementGroup", "SubmissionResult", "Task"]
