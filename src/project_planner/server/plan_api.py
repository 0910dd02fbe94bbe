"""Project plan API endpoints.

This module provides a FastAPI router for reading and reordering a
project's plan.  It is mounted under ``/api/v1/projects/{project_id}/plan``
by the main ``create_app`` factory.
"""

from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from ..plan.model import BatchResult, TaskSequence
from ..plan.service import PlanService


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class TaskSequenceModel(BaseModel):
    task_id: str
    sequence_order: int


class ReorderRequest(BaseModel):
    task_sequences: list[TaskSequenceModel]


class MovePositionRequest(BaseModel):
    position: int


class BatchTasksRequest(BaseModel):
    task_ids: list[str] = Field(default_factory=list)


class TaskInPlanResponse(BaseModel):
    task_id: str
    in_plan: bool


class TaskPositionResponse(BaseModel):
    task_id: str
    position: int


def _batch_response(result: BatchResult) -> JSONResponse:
    if result.failed_count == 0:
        status_code = 200
    elif result.success_count == 0:
        status_code = 400
    else:
        status_code = 206
    return JSONResponse(status_code=status_code, content=result.to_dict())


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def create_plan_router(get_service: Callable[[], PlanService]) -> APIRouter:
    """Create the project plan router.

    Parameters
    ----------
    get_service:
        A callable returning the :class:`PlanService` for the running app.
    """
    router = APIRouter(prefix="/api/v1/projects/{project_id}/plan", tags=["plan"])

    @router.get("")
    def get_plan(project_id: str) -> dict[str, Any]:
        return get_service().get_project_plan(project_id).to_dict()

    @router.get("/stats")
    def get_stats(project_id: str) -> dict[str, Any]:
        return get_service().get_plan_stats(project_id).to_dict()

    @router.get("/events")
    def get_events(project_id: str, limit: int = Query(100, ge=1, le=1000)) -> dict[str, Any]:
        events = get_service().get_recent_events(project_id, limit=limit)
        return {"events": events, "total": len(events)}

    @router.put("/reorder")
    def reorder(project_id: str, body: ReorderRequest) -> dict[str, Any]:
        sequences = [TaskSequence(task_id=s.task_id, sequence_order=s.sequence_order) for s in body.task_sequences]
        get_service().reorder_tasks(project_id, sequences)
        return {"message": "Tasks reordered", "project_id": project_id}

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    @router.post("/tasks/batch")
    def add_tasks(project_id: str, body: BatchTasksRequest) -> JSONResponse:
        result = get_service().add_tasks_to_plan(project_id, body.task_ids)
        logger.info(
            "Batch add to plan of {}: {}/{} succeeded", project_id, result.success_count, result.total
        )
        return _batch_response(result)

    @router.delete("/tasks/batch")
    def remove_tasks(project_id: str, body: BatchTasksRequest) -> JSONResponse:
        result = get_service().remove_tasks_from_plan(project_id, body.task_ids)
        logger.info(
            "Batch remove from plan of {}: {}/{} succeeded", project_id, result.success_count, result.total
        )
        return _batch_response(result)

    # ------------------------------------------------------------------
    # Single task
    # ------------------------------------------------------------------

    @router.post("/tasks/{task_id}", status_code=201)
    def add_task(project_id: str, task_id: str) -> dict[str, Any]:
        entry = get_service().add_task_to_plan(project_id, task_id)
        return {"entry": entry.to_dict()}

    @router.delete("/tasks/{task_id}")
    def remove_task(project_id: str, task_id: str) -> dict[str, Any]:
        get_service().remove_task_from_plan(project_id, task_id)
        return {"message": "Task removed from plan", "task_id": task_id}

    @router.get("/tasks/{task_id}/check", response_model=TaskInPlanResponse)
    def check_task(project_id: str, task_id: str) -> TaskInPlanResponse:
        in_plan = get_service().is_task_in_plan(project_id, task_id)
        return TaskInPlanResponse(task_id=task_id, in_plan=in_plan)

    @router.get("/tasks/{task_id}/position", response_model=TaskPositionResponse)
    def get_position(project_id: str, task_id: str) -> TaskPositionResponse:
        position = get_service().get_task_position(project_id, task_id)
        return TaskPositionResponse(task_id=task_id, position=position)

    @router.put("/tasks/{task_id}/position")
    def move_task(project_id: str, task_id: str, body: MovePositionRequest) -> dict[str, Any]:
        previous = get_service().move_task_to_position(project_id, task_id, body.position)
        return {"task_id": task_id, "previous_position": previous, "position": body.position}

    return router
