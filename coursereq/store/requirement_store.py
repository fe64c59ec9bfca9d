"""Owner of every course's partition of tasks into requirement groups.

Each course has its own lock; a mutation builds a new ``CourseSnapshot`` next to
the published one and swaps it in with a single assignment, so readers never
lock and a failing mutation leaves the previous snapshot untouched.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import Counter, defaultdict
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from coursereq.core.errors import (
    ForbiddenError,
    InvalidValueError,
    NotFoundError,
    RequirementEngineError,
)
from coursereq.core.provenance import MutationEvent
from coursereq.formula.parser import parse

from .authorization import EditGate, allow_all
from .models import CourseSnapshot, RequirementGroup

LOGGER = logging.getLogger(__name__)

Listener = Callable[[MutationEvent, CourseSnapshot], None]
# A planner receives the current snapshot and returns the new groups (``None`` for
# a no-op) plus the value handed back to the caller.
_Planner = Callable[[CourseSnapshot], Tuple[Optional[Tuple[RequirementGroup, ...]], Any]]


class MoveOutcome(str, Enum):
    """Result of ``move_task``; ``NO_OP_IGNORED`` is a success that changed nothing."""

    MOVED = "moved"
    NO_OP_IGNORED = "no_op_ignored"


def _check_threshold(threshold: Any) -> float:
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise InvalidValueError(f"Threshold must be a number, got {type(threshold).__name__}")
    if not math.isfinite(threshold):
        raise InvalidValueError(f"Threshold must be finite, got {threshold}")
    return float(threshold)


def _check_name(name: Any) -> str:
    if not isinstance(name, str):
        raise InvalidValueError(f"Group name must be a string, got {type(name).__name__}")
    return name.strip()


def _check_partition(snapshot: CourseSnapshot) -> None:
    counts = Counter(snapshot.assigned_task_ids())
    duplicated = sorted(task_id for task_id, count in counts.items() if count > 1)
    if duplicated:
        raise RequirementEngineError(
            f"Partition invariant violated in course {snapshot.course_id}: {', '.join(duplicated)}"
        )


class RequirementStore:
    """Thread-safe store of requirement groups, keyed by course."""

    def __init__(
        self,
        can_edit_course: EditGate = allow_all,
        *,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._can_edit_course = can_edit_course
        self._id_factory = id_factory or (lambda: uuid4().hex[:12])
        self._snapshots: Dict[str, CourseSnapshot] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Reads (lock-free)

    def snapshot(self, course_id: str) -> CourseSnapshot:
        course_id = str(course_id)
        return self._snapshots.get(course_id) or CourseSnapshot(course_id=course_id)

    def list_groups(self, course_id: str) -> Tuple[RequirementGroup, ...]:
        return self.snapshot(course_id).groups

    def courses(self) -> List[str]:
        return sorted(self._snapshots)

    def duplicate_names(self, course_id: str) -> Dict[str, List[str]]:
        """Map each group name used more than once to the ids carrying it."""
        by_name: Dict[str, List[str]] = defaultdict(list)
        for group in self.list_groups(course_id):
            by_name[group.name.casefold()].append(group.id)
        return {name: ids for name, ids in by_name.items() if len(ids) > 1}

    def has_group_named(self, course_id: str, name: str) -> bool:
        wanted = name.strip().casefold()
        return any(group.name.casefold() == wanted for group in self.list_groups(course_id))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a post-commit listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def restore(self, snapshot: CourseSnapshot) -> CourseSnapshot:
        """Publish a snapshot loaded by the persistence layer.

        Hydration bypasses the edit gate and listeners, but the snapshot must
        satisfy the partition invariant and use valid formulas.
        """
        course_id = str(snapshot.course_id)
        for group in snapshot.groups:
            parse(group.formula)
            _check_threshold(group.threshold)
            if len(set(group.tasks)) != len(group.tasks):
                raise RequirementEngineError(f"Requirement group {group.id} lists a task twice")
        if len({group.id for group in snapshot.groups}) != len(snapshot.groups):
            raise RequirementEngineError(f"Course {course_id} has duplicate group ids")
        _check_partition(snapshot)
        with self._lock_for(course_id):
            self._snapshots[course_id] = snapshot
        LOGGER.debug("Restored course %s at version %s", course_id, snapshot.version)
        return snapshot

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
        """Create an empty group at the end of the course's group order."""
        course_id = str(course_id)
        self._authorize(course_id)
        name = _check_name(name)
        threshold = _check_threshold(threshold)
        parse(formula)
        new_id = str(group_id) if group_id is not None else self._id_factory()

        def plan(current: CourseSnapshot):
            if current.has_group(new_id):
                raise InvalidValueError(f"Requirement group '{new_id}' already exists")
            if any(group.name.casefold() == name.casefold() for group in current.groups):
                LOGGER.warning("Course %s already has a requirement group named %r", course_id, name)
            seq = max((group.created_seq for group in current.groups), default=0) + 1
            group = RequirementGroup(
                id=new_id,
                name=name,
                formula=formula,
                threshold=threshold,
                hide_points=bool(hide_points),
                created_seq=seq,
            )
            return current.groups + (group,), group

        return self._mutate(course_id, "add_group", plan, {"group_id": new_id, "name": name})

    def remove_group(self, course_id: str, group_id: str) -> RequirementGroup:
        """Delete a group; its tasks become unassigned."""
        course_id = str(course_id)
        self._authorize(course_id)

        def plan(current: CourseSnapshot):
            removed = current.group(group_id)
            return tuple(group for group in current.groups if group.id != group_id), removed

        return self._mutate(course_id, "remove_group", plan, {"group_id": group_id})

    def move_task(
        self,
        course_id: str,
        task_id: str,
        from_group_id: str | None,
        to_group_id: str,
        at_index: int,
    ) -> MoveOutcome:
        """Atomically take ``task_id`` out of its current group and insert it into ``to_group_id``.

        ``at_index`` is clamped to the target list. The task's actual location is
        authoritative; ``from_group_id`` only has to name an existing group.
        """
        course_id = str(course_id)
        task_id = str(task_id)
        self._authorize(course_id)
        if isinstance(at_index, bool) or not isinstance(at_index, int):
            raise InvalidValueError(f"Index must be an integer, got {type(at_index).__name__}")

        def plan(current: CourseSnapshot):
            target = current.group(to_group_id)
            if from_group_id is not None and not current.has_group(from_group_id):
                raise NotFoundError("requirement group", from_group_id)
            location = current.locate(task_id)
            if from_group_id is not None and (location is None or location[0].id != from_group_id):
                LOGGER.debug(
                    "Task %s is not in group %s (found in %s); moving from its actual location",
                    task_id,
                    from_group_id,
                    location[0].id if location else None,
                )

            groups = []
            for group in current.groups:
                tasks = [existing for existing in group.tasks if existing != task_id]
                if group.id == target.id:
                    tasks.insert(max(0, min(at_index, len(tasks))), task_id)
                groups.append(group if tuple(tasks) == group.tasks else group.with_tasks(tasks))

            new_groups = tuple(groups)
            if new_groups == current.groups:
                return None, MoveOutcome.NO_OP_IGNORED
            return new_groups, MoveOutcome.MOVED

        return self._mutate(
            course_id,
            "move_task",
            plan,
            {"task_id": task_id, "from": from_group_id, "to": to_group_id, "index": at_index},
        )

    def unassign_task(self, course_id: str, task_id: str) -> bool:
        """Drop ``task_id`` from whichever group holds it; ``False`` if it was unassigned."""
        course_id = str(course_id)
        task_id = str(task_id)
        self._authorize(course_id)

        def plan(current: CourseSnapshot):
            location = current.locate(task_id)
            if location is None:
                return None, False
            group, _ = location
            groups = tuple(
                existing.with_tasks(t for t in existing.tasks if t != task_id) if existing.id == group.id else existing
                for existing in current.groups
            )
            return groups, True

        return self._mutate(course_id, "unassign_task", plan, {"task_id": task_id})

    def update_formula(self, course_id: str, group_id: str, formula: str) -> RequirementGroup:
        """Replace a group's formula after checking it parses."""
        course_id = str(course_id)
        self._authorize(course_id)
        parse(formula)
        return self._update_group(course_id, group_id, "update_formula", {"formula": formula})

    def update_threshold(self, course_id: str, group_id: str, threshold: float) -> RequirementGroup:
        course_id = str(course_id)
        self._authorize(course_id)
        return self._update_group(
            course_id, group_id, "update_threshold", {"threshold": _check_threshold(threshold)}
        )

    def rename_group(self, course_id: str, group_id: str, name: str) -> RequirementGroup:
        course_id = str(course_id)
        self._authorize(course_id)
        return self._update_group(course_id, group_id, "rename_group", {"name": _check_name(name)})

    def set_hide_points(self, course_id: str, group_id: str, hide_points: bool) -> RequirementGroup:
        course_id = str(course_id)
        self._authorize(course_id)
        return self._update_group(course_id, group_id, "set_hide_points", {"hide_points": bool(hide_points)})

    # ------------------------------------------------------------------
    # Internals

    def _authorize(self, course_id: str) -> None:
        if not self._can_edit_course(course_id):
            LOGGER.info("Rejected requirement mutation for course %s", course_id)
            raise ForbiddenError(course_id)

    def _lock_for(self, course_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(course_id)
            if lock is None:
                lock = self._locks[course_id] = threading.Lock()
            return lock

    def _update_group(
        self, course_id: str, group_id: str, operation: str, changes: Dict[str, Any]
    ) -> RequirementGroup:
        def plan(current: CourseSnapshot):
            existing = current.group(group_id)
            updated = replace(existing, **changes)
            if updated == existing:
                return None, existing
            groups = tuple(updated if group.id == group_id else group for group in current.groups)
            return groups, updated

        return self._mutate(course_id, operation, plan, {"group_id": group_id, **changes})

    def _mutate(self, course_id: str, operation: str, plan: _Planner, payload: Dict[str, Any]) -> Any:
        with self._lock_for(course_id):
            current = self.snapshot(course_id)
            new_groups, value = plan(current)
            if new_groups is None:
                LOGGER.debug("%s on course %s changed nothing (version %s)", operation, course_id, current.version)
                return value
            published = CourseSnapshot(course_id=course_id, version=current.version + 1, groups=new_groups)
            _check_partition(published)
            self._snapshots[course_id] = published

        LOGGER.info("%s applied to course %s (version %s)", operation, course_id, published.version)
        event = MutationEvent(
            course_id=course_id,
            operation=operation,
            version=published.version,
            payload=payload,
        )
        for listener in list(self._listeners):
            listener(event, published)
        return value


__all__ = ["Listener", "MoveOutcome", "RequirementStore"]
