"""Requirement store: per-course partition of tasks into requirement groups."""

from .authorization import AuthToken, CourseRole, GlobalRole, RoleAuthorization, allow_all
from .models import CourseSnapshot, RequirementGroup, SubmissionResult, Task
from .requirement_store import MoveOutcome, RequirementStore

__all__ = [
    "AuthToken",
    "CourseRole",
    "CourseSnapshot",
    "GlobalRole",
    "MoveOutcome",
    "RequirementGroup",
    "RequirementStore",
    "RoleAuthorization",
    "SubmissionResult",
    "Task",
    "allow_all",
]
