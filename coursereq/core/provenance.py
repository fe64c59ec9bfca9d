"""Append-only JSONL audit trail for requirement mutations."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable

from pydantic import BaseModel, Field

if TYPE_CHECKING:  # pragma: no cover
    from coursereq.store.models import CourseSnapshot


class MutationEvent(BaseModel):
    """Structured record for one applied store mutation."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    course_id: str = Field(..., description="Course whose partition changed.")
    operation: str = Field(..., description="Store operation, e.g. 'move_task' or 'add_group'.")
    version: int = Field(default=0, ge=0, description="Snapshot version published by the mutation.")
    payload: Dict[str, Any] = Field(default_factory=dict)


class ProvenanceLogger:
    """Append-only JSONL logger for mutation provenance."""

    def __init__(self, output_path: Path):
        self.output_path = output_path
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, event: MutationEvent | Dict[str, Any]) -> MutationEvent:
        """Write a single event to disk and return the normalized object."""
        if not isinstance(event, MutationEvent):
            event = MutationEvent(**event)
        line = event.model_dump_json()
        with self.output_path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
        return event

    def extend(self, events: Iterable[MutationEvent | Dict[str, Any]]) -> None:
        """Batch-write multiple events."""
        for event in events:
            self.log(event)

    def as_listener(self) -> Callable[[MutationEvent, "CourseSnapshot"], None]:
        """Adapter for ``RequirementStore.subscribe``."""

        def _listener(event: MutationEvent, snapshot: "CourseSnapshot") -> None:
            self.log(event)

        return _listener


__all__ = ["MutationEvent", "ProvenanceLogger"]
