from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal, get_args

from ..utils import _generate_id, _now_iso

TaskStatus = Literal["new", "in_progress", "testing", "done", "cancelled"]
TaskPriority = Literal["low", "medium", "high", "critical"]
TaskType = Literal["feature", "bugfix", "improvement", "refactoring", "documentation"]

TASK_STATUSES: tuple[str, ...] = get_args(TaskStatus)
TASK_PRIORITIES: tuple[str, ...] = get_args(TaskPriority)
TASK_TYPES: tuple[str, ...] = get_args(TaskType)


@dataclass
class Project:
    id: str = field(default_factory=lambda: _generate_id("proj"))
    name: str = ""
    description: str = ""
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(
            id=str(data.get("id") or _generate_id("proj")),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            created_at=str(data.get("created_at") or _now_iso()),
            updated_at=str(data.get("updated_at") or _now_iso()),
        )


@dataclass
class Task:
    id: str = field(default_factory=lambda: _generate_id("task"))
    project_id: str = ""
    number: str = ""
    title: str = ""
    description: str = ""
    status: TaskStatus = "new"
    priority: TaskPriority = "medium"
    task_type: TaskType = "feature"
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        payload = {k: data.get(k) for k in cls.__dataclass_fields__}
        payload["id"] = str(data.get("id") or _generate_id("task"))
        payload["project_id"] = str(data.get("project_id") or "")
        payload["number"] = str(data.get("number") or "")
        payload["title"] = str(data.get("title") or "")
        payload["description"] = str(data.get("description") or "")
        payload["status"] = str(data.get("status") or "new")
        payload["priority"] = str(data.get("priority") or "medium")
        payload["task_type"] = str(data.get("task_type") or "feature")
        payload["created_at"] = str(data.get("created_at") or _now_iso())
        payload["updated_at"] = str(data.get("updated_at") or _now_iso())
        return cls(**payload)
