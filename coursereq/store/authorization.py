"""Edit gate for requirement mutations.

The store receives a plain ``can_edit_course(course_id) -> bool`` callable.
``RoleAuthorization`` builds one from a role token: global admins and
moderators may edit every course, docents and tutors only their own.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict

from pydantic import BaseModel, Field, field_validator

LOGGER = logging.getLogger(__name__)

EditGate = Callable[[str], bool]


class GlobalRole(str, Enum):
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    USER = "USER"


class CourseRole(str, Enum):
    DOCENT = "DOCENT"
    TUTOR = "TUTOR"
    STUDENT = "STUDENT"


GLOBAL_EDITORS = frozenset({GlobalRole.ADMIN, GlobalRole.MODERATOR})
COURSE_EDITORS = frozenset({CourseRole.DOCENT, CourseRole.TUTOR})


class AuthToken(BaseModel):
    """Role claims of the caller, as handed over by the authentication service."""

    global_role: GlobalRole = GlobalRole.USER
    course_roles: Dict[str, CourseRole] = Field(default_factory=dict)

    @field_validator("global_role", mode="before")
    @classmethod
    def upper_global(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("course_roles", mode="before")
    @classmethod
    def normalize_course_roles(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {
            str(course_id): role.strip().upper() if isinstance(role, str) else role
            for course_id, role in value.items()
        }


class RoleAuthorization:
    """``can_edit_course`` backed by an ``AuthToken``."""

    def __init__(self, token: AuthToken) -> None:
        self.token = token

    def can_edit_course(self, course_id: str) -> bool:
        if self.token.global_role in GLOBAL_EDITORS:
            return True
        role = self.token.course_roles.get(str(course_id))
        allowed = role in COURSE_EDITORS
        if not allowed:
            LOGGER.debug("Course role %s may not edit course %s", role, course_id)
        return allowed

    def __call__(self, course_id: str) -> bool:
        return self.can_edit_course(course_id)


def allow_all(course_id: str) -> bool:
    """Gate used when the host has already authorized the session."""
    return True


__all__ = [
    "AuthToken",
    "CourseRole",
    "EditGate",
    "GlobalRole",
    "RoleAuthorization",
    "allow_all",
]
