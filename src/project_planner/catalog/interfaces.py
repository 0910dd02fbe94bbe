from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from .model import Project, Task


class ProjectRepository(ABC):
    @abstractmethod
    def list(self) -> list[Project]:
        raise NotImplementedError

    @abstractmethod
    def get(self, project_id: str) -> Optional[Project]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, project: Project) -> Project:
        raise NotImplementedError

    @abstractmethod
    def delete(self, project_id: str) -> bool:
        raise NotImplementedError


class TaskRepository(ABC):
    @abstractmethod
    def list(self, project_id: Optional[str] = None) -> list[Task]:
        raise NotImplementedError

    @abstractmethod
    def get(self, task_id: str) -> Optional[Task]:
        raise NotImplementedError

    @abstractmethod
    def create(self, task: Task) -> Task:
        """Persist a new task, assigning its per-project ``number``."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, task_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def delete_for_project(self, project_id: str) -> list[str]:
        raise NotImplementedError
