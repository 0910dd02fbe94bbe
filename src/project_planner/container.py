from __future__ import annotations

from pathlib import Path
from typing import Optional

from .catalog.file_repos import FileProjectRepository, FileTaskRepository
from .catalog.service import CatalogService
from .config import PlannerSettings, resolve_settings
from .constants import ARTIFACTS_DIR, PLAN_EVENTS_FILE, PLANS_DIR, PROJECTS_FILE, TASKS_FILE
from .plan.service import PlanService
from .plan.store import PlanStore


def ensure_state_root(state_dir: Path) -> Path:
    (state_dir / PLANS_DIR).mkdir(parents=True, exist_ok=True)
    (state_dir / ARTIFACTS_DIR).mkdir(parents=True, exist_ok=True)
    return state_dir


class Container:
    def __init__(self, project_dir: Path, settings: Optional[PlannerSettings] = None) -> None:
        self.settings = settings or resolve_settings(project_dir)
        self.project_dir = self.settings.project_dir
        self.state_root = ensure_state_root(self.settings.state_dir)

        self.projects = FileProjectRepository(
            self.state_root / PROJECTS_FILE, self.state_root / "projects.lock"
        )
        self.tasks = FileTaskRepository(self.state_root / TASKS_FILE, self.state_root / "tasks.lock")
        self.plan_store = PlanStore(self.state_root / PLANS_DIR)

        self.catalog = CatalogService(self.projects, self.tasks, self.plan_store)
        self.plans = PlanService(
            self.plan_store,
            self.projects,
            self.tasks,
            events_path=self.state_root / ARTIFACTS_DIR / PLAN_EVENTS_FILE,
            strict_ordering=self.settings.strict_ordering,
        )
