from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

import yaml

from ..constants import STORE_SCHEMA_VERSION, TASK_NUMBER_PREFIX
from ..io_utils import FileLock, _atomic_write_yaml, _load_yaml_with_error
from ..plan.errors import StorageFailure
from ..utils import _now_iso
from .interfaces import ProjectRepository, TaskRepository
from .model import Project, Task

T = TypeVar("T")


def _number_seq(number: str) -> int:
    """``TASK-0042`` -> 42; anything unparsable counts as 0."""
    if not number.startswith(TASK_NUMBER_PREFIX):
        return 0
    try:
        return int(number[len(TASK_NUMBER_PREFIX):])
    except ValueError:
        return 0


class _YamlCollectionRepo(Generic[T]):
    def __init__(
        self,
        path: Path,
        lock_path: Path,
        key: str,
        loader: Callable[[dict[str, Any]], T],
        dumper: Callable[[T], dict[str, Any]],
    ) -> None:
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()
        self._key = key
        self._loader = loader
        self._dumper = dumper

    @contextmanager
    def locked(self) -> Iterator[None]:
        with self._thread_lock:
            with self._lock:
                yield

    def load(self) -> list[T]:
        data, err = _load_yaml_with_error(self._path, {})
        if err:
            raise StorageFailure(f"Cannot read {self._key}: {err}")
        items = data.get(self._key, [])
        if not isinstance(items, list):
            return []
        return [self._loader(item) for item in items if isinstance(item, dict)]

    def save(self, items: list[T]) -> None:
        payload = {"version": STORE_SCHEMA_VERSION, self._key: [self._dumper(item) for item in items]}
        try:
            _atomic_write_yaml(self._path, payload)
        except (OSError, yaml.YAMLError) as exc:
            raise StorageFailure(f"Cannot write {self._key}: {exc}") from exc


class FileProjectRepository(ProjectRepository):
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[Project](
            path,
            lock_path,
            "projects",
            loader=Project.from_dict,
            dumper=lambda p: p.to_dict(),
        )

    def list(self) -> list[Project]:
        with self._repo.locked():
            return self._repo.load()

    def get(self, project_id: str) -> Optional[Project]:
        for project in self.list():
            if project.id == project_id:
                return project
        return None

    def upsert(self, project: Project) -> Project:
        with self._repo.locked():
            projects = self._repo.load()
            project.updated_at = _now_iso()
            for idx, existing in enumerate(projects):
                if existing.id == project.id:
                    projects[idx] = project
                    break
            else:
                projects.append(project)
            self._repo.save(projects)
        return project

    def delete(self, project_id: str) -> bool:
        with self._repo.locked():
            projects = self._repo.load()
            keep = [p for p in projects if p.id != project_id]
            if len(keep) == len(projects):
                return False
            self._repo.save(keep)
        return True


class FileTaskRepository(TaskRepository):
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[Task](
            path,
            lock_path,
            "tasks",
            loader=Task.from_dict,
            dumper=lambda t: t.to_dict(),
        )

    def list(self, project_id: Optional[str] = None) -> list[Task]:
        with self._repo.locked():
            tasks = self._repo.load()
        if project_id is None:
            return tasks
        return [t for t in tasks if t.project_id == project_id]

    def get(self, task_id: str) -> Optional[Task]:
        with self._repo.locked():
            for task in self._repo.load():
                if task.id == task_id:
                    return task
        return None

    def create(self, task: Task) -> Task:
        with self._repo.locked():
            tasks = self._repo.load()
            if any(t.id == task.id for t in tasks):
                raise ValueError(f"Task {task.id} already exists")
            last = max(
                (_number_seq(t.number) for t in tasks if t.project_id == task.project_id),
                default=0,
            )
            task.number = task.number or f"{TASK_NUMBER_PREFIX}{last + 1:04d}"
            task.created_at = task.created_at or _now_iso()
            task.updated_at = _now_iso()
            tasks.append(task)
            self._repo.save(tasks)
        return task

    def delete(self, task_id: str) -> bool:
        with self._repo.locked():
            tasks = self._repo.load()
            keep = [t for t in tasks if t.id != task_id]
            if len(keep) == len(tasks):
                return False
            self._repo.save(keep)
        return True

    def delete_for_project(self, project_id: str) -> list[str]:
        with self._repo.locked():
            tasks = self._repo.load()
            removed = [t.id for t in tasks if t.project_id == project_id]
            if removed:
                self._repo.save([t for t in tasks if t.project_id != project_id])
        return removed
