"""Plan data model.

A :class:`PlanEntry` places one task at one position of its project's plan.
The remaining classes are read projections built from entries and task
summaries; they are never persisted.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from ..utils import _generate_id, _now_iso


# ---------------------------------------------------------------------------
# Persisted entry
# ---------------------------------------------------------------------------

@dataclass
class PlanEntry:
    """One task's placement in one project's plan."""

    project_id: str
    task_id: str
    sequence_order: int
    id: str = field(default_factory=lambda: _generate_id("plan"))
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def touch(self) -> None:
        """Bump ``updated_at`` to now."""
        self.updated_at = _now_iso()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlanEntry":
        return cls(
            id=str(data.get("id") or _generate_id("plan")),
            project_id=str(data.get("project_id") or ""),
            task_id=str(data.get("task_id") or ""),
            sequence_order=int(data.get("sequence_order") or 0),
            created_at=str(data.get("created_at") or _now_iso()),
            updated_at=str(data.get("updated_at") or _now_iso()),
        )


@dataclass(frozen=True)
class TaskSequence:
    """Requested position for one task in a bulk reorder."""

    task_id: str
    sequence_order: int


# ---------------------------------------------------------------------------
# Read projections
# ---------------------------------------------------------------------------

@dataclass
class PlanItem:
    """A plan entry joined with the summary fields of its task."""

    id: str
    project_id: str
    task_id: str
    sequence_order: int
    created_at: str
    updated_at: str
    task_number: str = ""
    task_title: str = ""
    task_description: str = ""
    task_status: str = ""
    task_priority: str = ""
    task_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ProjectPlan:
    project_id: str
    items: list[PlanItem] = field(default_factory=list)

    def task_ids(self) -> list[str]:
        return [item.task_id for item in self.items]

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class PlanStats:
    project_id: str
    total_tasks: int = 0
    status_distribution: dict[str, int] = field(default_factory=dict)
    priority_distribution: dict[str, int] = field(default_factory=dict)
    type_distribution: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BatchResult:
    """Outcome of a batch of independent add/remove calls."""

    total: int = 0
    success_count: int = 0
    errors: list[str] = field(default_factory=list)
    succeeded: list[str] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.errors)

    def record_success(self, task_id: str) -> None:
        self.success_count += 1
        self.succeeded.append(task_id)

    def record_failure(self, task_id: str, message: str) -> None:
        self.errors.append(f"Task {task_id}: {message}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "total_tasks": self.total,
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "succeeded": list(self.succeeded),
        }
        if self.errors:
            data["errors"] = list(self.errors)
        return data


def build_plan_item(entry: PlanEntry, task: Optional[Any]) -> PlanItem:
    """Join *entry* with the summary fields of *task* (if still present)."""
    item = PlanItem(
        id=entry.id,
        project_id=entry.project_id,
        task_id=entry.task_id,
        sequence_order=entry.sequence_order,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )
    if task is not None:
        item.task_number = task.number
        item.task_title = task.title
        item.task_description = task.description
        item.task_status = task.status
        item.task_priority = task.priority
        item.task_type = task.task_type
    return item
