"""Minimal project/task management with plan cascades."""

from __future__ import annotations

import logging

from ..plan.errors import InvalidArgument, NotFound
from ..plan.store import PlanStore
from .interfaces import ProjectRepository, TaskRepository
from .model import TASK_PRIORITIES, TASK_STATUSES, TASK_TYPES, Project, Task

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, projects: ProjectRepository, tasks: TaskRepository, plan_store: PlanStore) -> None:
        self.projects = projects
        self.tasks = tasks
        self.plan_store = plan_store

    # -- projects -----------------------------------------------------------

    def list_projects(self) -> list[Project]:
        return self.projects.list()

    def get_project(self, project_id: str) -> Project:
        project = self.projects.get(project_id)
        if project is None:
            raise NotFound(f"Project {project_id} not found")
        return project

    def create_project(self, name: str, description: str = "") -> Project:
        if not name or not name.strip():
            raise InvalidArgument("name is required")
        project = Project(name=name.strip(), description=description)
        self.projects.upsert(project)
        logger.info("Created project %s: %s", project.id, project.name)
        return project

    def delete_project(self, project_id: str) -> None:
        """Delete a project, its tasks and its whole plan."""
        self.get_project(project_id)
        # Plan adds re-check the catalog under the same lock, so none can land
        # between the drop and the catalog deletes.
        with self.plan_store.transaction(project_id) as tx:
            dropped = tx.drop()
            removed = self.tasks.delete_for_project(project_id)
            self.projects.delete(project_id)
        logger.info(
            "Deleted project %s (%d tasks, %d plan entries)", project_id, len(removed), dropped
        )

    # -- tasks --------------------------------------------------------------

    def list_tasks(self, project_id: str) -> list[Task]:
        self.get_project(project_id)
        return self.tasks.list(project_id)

    def get_task(self, task_id: str) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFound(f"Task {task_id} not found")
        return task

    def create_task(
        self,
        project_id: str,
        title: str,
        description: str = "",
        status: str = "new",
        priority: str = "medium",
        task_type: str = "feature",
    ) -> Task:
        self.get_project(project_id)
        if not title or not title.strip():
            raise InvalidArgument("title is required")
        if status not in TASK_STATUSES:
            raise InvalidArgument(f"Unknown status {status!r}")
        if priority not in TASK_PRIORITIES:
            raise InvalidArgument(f"Unknown priority {priority!r}")
        if task_type not in TASK_TYPES:
            raise InvalidArgument(f"Unknown task type {task_type!r}")
        task = self.tasks.create(
            Task(
                project_id=project_id,
                title=title.strip(),
                description=description,
                status=status,  # type: ignore[arg-type]
                priority=priority,  # type: ignore[arg-type]
                task_type=task_type,  # type: ignore[arg-type]
            )
        )
        logger.info("Created task %s (%s) in project %s", task.id, task.number, project_id)
        return task

    def delete_task(self, task_id: str) -> None:
        """Delete a task, closing the gap it leaves in its project's plan."""
        task = self.get_task(task_id)
        with self.plan_store.transaction(task.project_id) as tx:
            if tx.get(task.id) is not None:
                entry = tx.remove_compacting(task.id)
                tx.record("plan.task_removed", task.id, position=entry.sequence_order, reason="task_deleted")
            self.tasks.delete(task.id)
        logger.info("Deleted task %s from project %s", task.id, task.project_id)
