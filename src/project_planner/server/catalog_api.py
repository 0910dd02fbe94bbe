"""Minimal project and task endpoints used to populate plans."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter
from pydantic import BaseModel

from ..catalog.service import CatalogService


class CreateProjectRequest(BaseModel):
    name: str
    description: str = ""


class CreateTaskRequest(BaseModel):
    title: str
    description: str = ""
    status: str = "new"
    priority: str = "medium"
    task_type: str = "feature"


def create_catalog_router(get_catalog: Callable[[], CatalogService]) -> APIRouter:
    router = APIRouter(prefix="/api/v1", tags=["catalog"])

    @router.get("/projects")
    def list_projects() -> dict[str, Any]:
        projects = [p.to_dict() for p in get_catalog().list_projects()]
        return {"projects": projects, "total": len(projects)}

    @router.post("/projects", status_code=201)
    def create_project(body: CreateProjectRequest) -> dict[str, Any]:
        project = get_catalog().create_project(body.name, body.description)
        return {"project": project.to_dict()}

    @router.get("/projects/{project_id}")
    def get_project(project_id: str) -> dict[str, Any]:
        return {"project": get_catalog().get_project(project_id).to_dict()}

    @router.delete("/projects/{project_id}")
    def delete_project(project_id: str) -> dict[str, Any]:
        get_catalog().delete_project(project_id)
        return {"message": "Project deleted", "project_id": project_id}

    @router.get("/projects/{project_id}/tasks")
    def list_tasks(project_id: str) -> dict[str, Any]:
        tasks = [t.to_dict() for t in get_catalog().list_tasks(project_id)]
        return {"tasks": tasks, "total": len(tasks)}

    @router.post("/projects/{project_id}/tasks", status_code=201)
    def create_task(project_id: str, body: CreateTaskRequest) -> dict[str, Any]:
        task = get_catalog().create_task(project_id, **body.model_dump())
        return {"task": task.to_dict()}

    @router.get("/tasks/{task_id}")
    def get_task(task_id: str) -> dict[str, Any]:
        return {"task": get_catalog().get_task(task_id).to_dict()}

    @router.delete("/tasks/{task_id}")
    def delete_task(task_id: str) -> dict[str, Any]:
        get_catalog().delete_task(task_id)
        return {"message": "Task deleted", "task_id": task_id}

    return router
