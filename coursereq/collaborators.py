"""Protocols for the services the engine consumes, plus in-memory stand-ins."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from coursereq.store.models import SubmissionResult, Task


@runtime_checkable
class SubmissionResultSupplier(Protocol):
    def results_for(self, course_id: str, student_id: str) -> Sequence[SubmissionResult]:
        ...


@runtime_checkable
class TaskRegistry(Protocol):
    def get(self, task_id: str) -> Optional[Task]:
        ...

    def tasks_for(self, course_id: str) -> Sequence[Task]:
        ...


class InMemoryResultSupplier:
    """Results keyed by course; used by the CLI and tests."""

    def __init__(self, results: Dict[str, Iterable[SubmissionResult]] | None = None) -> None:
        self._results: Dict[str, List[SubmissionResult]] = {
            str(course_id): list(items) for course_id, items in (results or {}).items()
        }

    def add(self, course_id: str, result: SubmissionResult) -> None:
        self._results.setdefault(str(course_id), []).append(result)

    def results_for(self, course_id: str, student_id: str) -> Sequence[SubmissionResult]:
        return [result for result in self._results.get(str(course_id), []) if result.student_id == str(student_id)]

    def student_ids(self, course_id: str) -> List[str]:
        seen: Dict[str, None] = {}
        for result in self._results.get(str(course_id), []):
            seen.setdefault(result.student_id, None)
        return list(seen)


class InMemoryTaskRegistry:
    def __init__(self, tasks_by_course: Dict[str, Iterable[Task]] | None = None) -> None:
        self._by_course: Dict[str, List[Task]] = {
            str(course_id): list(tasks) for course_id, tasks in (tasks_by_course or {}).items()
        }

    def get(self, task_id: str) -> Optional[Task]:
        for tasks in self._by_course.values():
            for task in tasks:
                if task.id == str(task_id):
                    return task
        return None

    def tasks_for(self, course_id: str) -> Sequence[Task]:
        return list(self._by_course.get(str(course_id), []))


__all__ = [
    "InMemoryResultSupplier",
    "InMemoryTaskRegistry",
    "SubmissionResultSupplier",
    "TaskRegistry",
]
