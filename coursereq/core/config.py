"""
Typed configuration helpers for the requirement engine.

Two YAML documents are understood: the engine config (results policy, audit
trail, logging) and course fixtures that seed an in-memory store for the CLI
and for tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from coursereq.core.policy import AggregationPolicy
from coursereq.store.authorization import AuthToken
from coursereq.store.models import SubmissionResult, Task


class ResultsViewConfig(BaseModel):
    """Knobs for the per-course results matrix."""

    aggregation: AggregationPolicy = AggregationPolicy.SUM_PASSING
    include_details: bool = Field(default=False, description="Add per-task scores to every row.")
    show_bonus: bool = Field(default=True, description="Blank the bonus totals when disabled.")

    @field_validator("aggregation", mode="before")
    @classmethod
    def normalize_aggregation(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().replace("_", "-")
        return value


class AuditConfig(BaseModel):
    """Where mutation provenance is written."""

    enabled: bool = False
    path: Path = Field(default=Path("outputs/audit/mutations.jsonl"))

    @field_validator("path", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path:
        return Path(value).expanduser()


class EngineConfig(BaseModel):
    """Top-level configuration for hosts embedding the engine."""

    model_config = ConfigDict(extra="ignore")

    results: ResultsViewConfig = Field(default_factory=ResultsViewConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class RequirementFixture(BaseModel):
    """One requirement group as written in a course fixture."""

    name: str
    formula: str = ""
    threshold: float = 0.0
    hide_points: bool = False
    tasks: List[str] = Field(default_factory=list)

    @field_validator("tasks", mode="before")
    @classmethod
    def stringify_tasks(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item).strip() for item in value]
        return value


class CourseFixture(BaseModel):
    """Course seed: tasks, requirement groups, submission results, and the editor's roles."""

    course_id: str
    title: Optional[str] = None
    tasks: List[Task] = Field(default_factory=list)
    requirements: List[RequirementFixture] = Field(default_factory=list)
    results: List[SubmissionResult] = Field(default_factory=list)
    roles: Optional[AuthToken] = None

    @field_validator("course_id", mode="before")
    @classmethod
    def stringify_course(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @model_validator(mode="after")
    def check_task_references(self) -> "CourseFixture":
        seen: Dict[str, str] = {}
        for requirement in self.requirements:
            for task_id in requirement.tasks:
                if task_id in seen:
                    raise ValueError(
                        f"Task {task_id} is listed in both '{seen[task_id]}' and '{requirement.name}'"
                    )
                seen[task_id] = requirement.name
        known = {task.id for task in self.tasks}
        if not known:
            return self
        unknown = sorted(
            {task_id for requirement in self.requirements for task_id in requirement.tasks} - known
        )
        if unknown:
            raise ValueError(f"Requirements reference unknown tasks: {', '.join(unknown)}")
        return self

    @property
    def student_ids(self) -> List[str]:
        seen: Dict[str, None] = {}
        for result in self.results:
            seen.setdefault(result.student_id, None)
        return list(seen)


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at root of {path}, received {type(data)}")
    return data


def _resolve_config_path(value: Any, base_dir: Path) -> str:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    else:
        path = path.resolve()
    return str(path)


def load_engine_config(path: Path, *, base_dir: Path | None = None) -> EngineConfig:
    """Load the engine config; relative audit paths resolve against the file's directory."""
    path = path.expanduser().resolve()
    data = read_yaml_file(path)
    audit = data.get("audit")
    if isinstance(audit, dict) and audit.get("path"):
        audit["path"] = _resolve_config_path(audit["path"], (base_dir or path.parent).resolve())
    try:
        return EngineConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid engine config in {path}") from exc


def load_course_fixture(path: Path) -> CourseFixture:
    """Parse a course fixture YAML into a typed model."""
    data = read_yaml_file(path.expanduser().resolve())
    try:
        return CourseFixture.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid course fixture in {path}") from exc


__all__ = [
    "AuditConfig",
    "CourseFixture",
    "EngineConfig",
    "RequirementFixture",
    "ResultsViewConfig",
    "load_course_fixture",
    "load_engine_config",
    "read_yaml_file",
]
