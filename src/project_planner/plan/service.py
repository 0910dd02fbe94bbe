"""Plan service: validation, existence and ownership checks, event log.

Every operation checks its arguments and the project/task facts before it
touches the :class:`PlanStore`.  The store re-checks membership inside its
transaction, and adds re-check project and task existence there too, so a
concurrent change between the check and the write still fails with the right
error instead of corrupting the order.  Events come from the store, which
reports them in commit order.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Any, Iterable, Optional

from ..catalog.interfaces import ProjectRepository, TaskRepository
from ..catalog.model import Project, Task
from ..io_utils import _append_event, _read_events
from .errors import (
    AlreadyExists,
    Conflict,
    InvalidArgument,
    InvariantViolation,
    NotFound,
    NotInPlan,
    PlanError,
)
from .model import (
    BatchResult,
    PlanEntry,
    PlanStats,
    ProjectPlan,
    TaskSequence,
    build_plan_item,
)
from .store import PlanStore

logger = logging.getLogger(__name__)


class PlanService:
    """Operations on the ordered plan of a project.

    Parameters
    ----------
    plan_store:
        Store that owns the persisted ordering.
    projects, tasks:
        Read-only sources of project and task facts.
    events_path:
        JSON-lines file that receives ``plan.*`` events, or ``None`` to
        disable the event log.
    strict_ordering:
        Reject reorders that do not produce ``1..N`` and moves beyond ``N``.
    """

    def __init__(
        self,
        plan_store: PlanStore,
        projects: ProjectRepository,
        tasks: TaskRepository,
        events_path: Optional[Path] = None,
        strict_ordering: bool = True,
    ) -> None:
        self.store = plan_store
        self.projects = projects
        self.tasks = tasks
        self.strict_ordering = strict_ordering
        self._events_path = events_path
        plan_store.subscribe(self._on_plan_event)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit_event(self, event_type: str, project_id: str, task_id: Optional[str] = None, **details: Any) -> None:
        if self._events_path is None:
            return
        payload: dict[str, Any] = {"type": event_type, "project_id": project_id}
        if task_id is not None:
            payload["task_id"] = task_id
        if details:
            payload["details"] = details
        try:
            _append_event(self._events_path, payload)
        except Exception:
            logger.exception("Failed to append plan event %s for %s", event_type, project_id)

    def _on_plan_event(
        self, event_type: str, project_id: str, task_id: Optional[str], details: dict[str, Any]
    ) -> None:
        self._emit_event(event_type, project_id, task_id, **details)

    def get_recent_events(self, project_id: str, limit: int = 100) -> list[dict[str, Any]]:
        self._require_project(project_id)
        if limit < 1 or self._events_path is None:
            return []
        events = [e for e in _read_events(self._events_path) if e.get("project_id") == project_id]
        return events[-limit:]

    # ------------------------------------------------------------------
    # Pre-checks
    # ------------------------------------------------------------------

    @staticmethod
    def _require_id(value: Optional[str], name: str) -> str:
        if value is None or not str(value).strip():
            raise InvalidArgument(f"{name} is required")
        return str(value).strip()

    def _require_project(self, project_id: str) -> Project:
        project_id = self._require_id(project_id, "project_id")
        project = self.projects.get(project_id)
        if project is None:
            raise NotFound(f"Project {project_id} not found")
        return project

    def _require_task(self, project_id: str, task_id: str) -> Task:
        task_id = self._require_id(task_id, "task_id")
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFound(f"Task {task_id} not found")
        if task.project_id != project_id:
            raise InvariantViolation(f"Task {task_id} does not belong to project {project_id}")
        return task

    # ------------------------------------------------------------------
    # Single-task operations
    # ------------------------------------------------------------------

    def add_task_to_plan(self, project_id: str, task_id: str) -> PlanEntry:
        project = self._require_project(project_id)
        task = self._require_task(project.id, task_id)
        if self.store.contains(project.id, task.id):
            raise AlreadyExists(f"Task {task.id} is already in the plan of project {project.id}")

        def still_exists() -> None:
            # The catalog may have deleted either side since the checks above.
            self._require_project(project.id)
            self._require_task(project.id, task.id)

        entry = self.store.add(project.id, task.id, guard=still_exists)
        logger.info("Added task %s to plan of %s at %d", task.id, project.id, entry.sequence_order)
        return entry

    def remove_task_from_plan(self, project_id: str, task_id: str) -> PlanEntry:
        project = self._require_project(project_id)
        task = self._require_task(project.id, task_id)
        entry = self.store.remove(project.id, task.id)
        logger.info("Removed task %s from plan of %s (was at %d)", task.id, project.id, entry.sequence_order)
        return entry

    def get_project_plan(self, project_id: str) -> ProjectPlan:
        project = self._require_project(project_id)
        entries = self.store.read_snapshot(project.id)
        tasks = {t.id: t for t in self.tasks.list(project.id)}
        return ProjectPlan(
            project_id=project.id,
            items=[build_plan_item(e, tasks.get(e.task_id)) for e in entries],
        )

    def reorder_tasks(self, project_id: str, sequences: Iterable[TaskSequence]) -> None:
        project = self._require_project(project_id)
        sequences = list(sequences)
        if not sequences:
            raise InvalidArgument("task_sequences must not be empty")

        seen_orders: dict[int, str] = {}
        seen_tasks: set[str] = set()
        for seq in sequences:
            task_id = self._require_id(seq.task_id, "task_id")
            if seq.sequence_order <= 0:
                raise InvalidArgument(f"sequence_order for task {task_id} must be positive")
            if task_id in seen_tasks:
                raise Conflict(f"Task {task_id} is listed more than once")
            if seq.sequence_order in seen_orders:
                raise Conflict(
                    f"Tasks {seen_orders[seq.sequence_order]} and {task_id} "
                    f"both request position {seq.sequence_order}"
                )
            seen_tasks.add(task_id)
            seen_orders[seq.sequence_order] = task_id

        in_plan = {e.task_id for e in self.store.read_snapshot(project.id)}
        normalized: list[TaskSequence] = []
        for seq in sequences:
            task = self._require_task(project.id, seq.task_id)
            if task.id not in in_plan:
                raise NotInPlan(f"Task {task.id} is not in the plan of project {project.id}")
            normalized.append(TaskSequence(task_id=task.id, sequence_order=seq.sequence_order))

        self.store.reorder(project.id, normalized, require_dense=self.strict_ordering)
        logger.info("Reordered %d tasks in plan of %s", len(normalized), project.id)

    def move_task_to_position(self, project_id: str, task_id: str, position: int) -> int:
        """Move a task and return the position it came from."""
        project = self._require_project(project_id)
        if position <= 0:
            raise InvalidArgument("position must be positive")
        task = self._require_task(project.id, task_id)
        previous = self.store.move(project.id, task.id, position, bounded=self.strict_ordering)
        if previous != position:
            logger.info("Moved task %s in plan of %s from %d to %d", task.id, project.id, previous, position)
        return previous

    def get_task_position(self, project_id: str, task_id: str) -> int:
        project = self._require_project(project_id)
        task = self._require_task(project.id, task_id)
        return self.store.position(project.id, task.id)

    def is_task_in_plan(self, project_id: str, task_id: str) -> bool:
        project = self._require_project(project_id)
        task = self._require_task(project.id, task_id)
        return self.store.contains(project.id, task.id)

    # ------------------------------------------------------------------
    # Batch operations and statistics
    # ------------------------------------------------------------------

    def add_tasks_to_plan(self, project_id: str, task_ids: Iterable[str]) -> BatchResult:
        return self._run_batch("add", project_id, task_ids, self.add_task_to_plan)

    def remove_tasks_from_plan(self, project_id: str, task_ids: Iterable[str]) -> BatchResult:
        return self._run_batch("remove", project_id, task_ids, self.remove_task_from_plan)

    def _run_batch(self, verb: str, project_id: str, task_ids: Iterable[str], op: Any) -> BatchResult:
        project = self._require_project(project_id)
        task_ids = list(task_ids)
        if not task_ids:
            raise InvalidArgument("task_ids must not be empty")
        result = BatchResult(total=len(task_ids))
        for task_id in task_ids:
            try:
                op(project.id, task_id)
            except PlanError as exc:
                result.record_failure(task_id, exc.message)
            else:
                result.record_success(task_id)
        if result.failed_count:
            logger.warning(
                "Batch %s on plan of %s: %d of %d failed",
                verb,
                project.id,
                result.failed_count,
                result.total,
            )
        return result

    def get_plan_stats(self, project_id: str) -> PlanStats:
        plan = self.get_project_plan(project_id)
        return PlanStats(
            project_id=plan.project_id,
            total_tasks=len(plan.items),
            status_distribution=dict(Counter(i.task_status for i in plan.items if i.task_status)),
            priority_distribution=dict(Counter(i.task_priority for i in plan.items if i.task_priority)),
            type_distribution=dict(Counter(i.task_type for i in plan.items if i.task_type)),
        )
