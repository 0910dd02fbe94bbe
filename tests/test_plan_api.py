"""Tests for the plan and catalog HTTP endpoints."""

from __future__ import annotations

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from project_planner.config import resolve_settings
from project_planner.server.api import create_app


@pytest.fixture
def app(tmp_path: Path):
    """Create a test app with a temp project directory."""
    settings = resolve_settings(tmp_path, env={})
    return create_app(settings=settings, enable_cors=False)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _project(client: AsyncClient, name: str = "Alpha") -> str:
    resp = await client.post("/api/v1/projects", json={"name": name})
    assert resp.status_code == 201
    return resp.json()["project"]["id"]


async def _task(client: AsyncClient, project_id: str, title: str, **fields: str) -> str:
    resp = await client.post(f"/api/v1/projects/{project_id}/tasks", json={"title": title, **fields})
    assert resp.status_code == 201
    return resp.json()["task"]["id"]


async def _plan_ids(client: AsyncClient, project_id: str) -> list[str]:
    resp = await client.get(f"/api/v1/projects/{project_id}/plan")
    assert resp.status_code == 200
    return [item["task_id"] for item in resp.json()["items"]]


@pytest.mark.anyio
class TestPlanEndpoints:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_add_and_read(self, client: AsyncClient) -> None:
        pid = await _project(client)
        a = await _task(client, pid, "A")
        b = await _task(client, pid, "B")

        resp = await client.post(f"/api/v1/projects/{pid}/plan/tasks/{a}")
        assert resp.status_code == 201
        assert resp.json()["entry"]["sequence_order"] == 1
        await client.post(f"/api/v1/projects/{pid}/plan/tasks/{b}")

        resp = await client.get(f"/api/v1/projects/{pid}/plan")
        items = resp.json()["items"]
        assert [i["task_id"] for i in items] == [a, b]
        assert items[0]["task_number"] == "TASK-0001"
        assert items[1]["sequence_order"] == 2

    async def test_check_and_position(self, client: AsyncClient) -> None:
        pid = await _project(client)
        a = await _task(client, pid, "A")
        b = await _task(client, pid, "B")
        await client.post(f"/api/v1/projects/{pid}/plan/tasks/{a}")

        resp = await client.get(f"/api/v1/projects/{pid}/plan/tasks/{a}/check")
        assert resp.json() == {"task_id": a, "in_plan": True}
        resp = await client.get(f"/api/v1/projects/{pid}/plan/tasks/{b}/check")
        assert resp.json() == {"task_id": b, "in_plan": False}

        resp = await client.get(f"/api/v1/projects/{pid}/plan/tasks/{a}/position")
        assert resp.json() == {"task_id": a, "position": 1}
        resp = await client.get(f"/api/v1/projects/{pid}/plan/tasks/{b}/position")
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_in_plan"

    async def test_move_and_remove(self, client: AsyncClient) -> None:
        pid = await _project(client)
        ids = [await _task(client, pid, t) for t in ("A", "B", "C", "D")]
        await client.post(f"/api/v1/projects/{pid}/plan/tasks/batch", json={"task_ids": ids})

        resp = await client.put(f"/api/v1/projects/{pid}/plan/tasks/{ids[3]}/position", json={"position": 1})
        assert resp.status_code == 200
        assert resp.json()["previous_position"] == 4
        assert await _plan_ids(client, pid) == [ids[3], ids[0], ids[1], ids[2]]

        resp = await client.delete(f"/api/v1/projects/{pid}/plan/tasks/{ids[0]}")
        assert resp.status_code == 200
        assert await _plan_ids(client, pid) == [ids[3], ids[1], ids[2]]

    async def test_reorder(self, client: AsyncClient) -> None:
        pid = await _project(client)
        a = await _task(client, pid, "A")
        b = await _task(client, pid, "B")
        await client.post(f"/api/v1/projects/{pid}/plan/tasks/batch", json={"task_ids": [a, b]})

        resp = await client.put(
            f"/api/v1/projects/{pid}/plan/reorder",
            json={"task_sequences": [{"task_id": a, "sequence_order": 2}, {"task_id": b, "sequence_order": 1}]},
        )
        assert resp.status_code == 200
        assert await _plan_ids(client, pid) == [b, a]

    async def test_reorder_duplicate_orders_conflict(self, client: AsyncClient) -> None:
        pid = await _project(client)
        a = await _task(client, pid, "A")
        b = await _task(client, pid, "B")
        await client.post(f"/api/v1/projects/{pid}/plan/tasks/batch", json={"task_ids": [a, b]})

        resp = await client.put(
            f"/api/v1/projects/{pid}/plan/reorder",
            json={"task_sequences": [{"task_id": a, "sequence_order": 1}, {"task_id": b, "sequence_order": 1}]},
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "conflict"

    async def test_stats_and_events(self, client: AsyncClient) -> None:
        pid = await _project(client)
        a = await _task(client, pid, "A", priority="critical")
        await client.post(f"/api/v1/projects/{pid}/plan/tasks/{a}")

        resp = await client.get(f"/api/v1/projects/{pid}/plan/stats")
        assert resp.status_code == 200
        stats = resp.json()
        assert stats["total_tasks"] == 1
        assert stats["priority_distribution"] == {"critical": 1}

        resp = await client.get(f"/api/v1/projects/{pid}/plan/events")
        assert [e["type"] for e in resp.json()["events"]] == ["plan.task_added"]


@pytest.mark.anyio
class TestErrorMapping:
    async def test_unknown_project(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/projects/proj-missing/plan")
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    async def test_already_exists(self, client: AsyncClient) -> None:
        pid = await _project(client)
        a = await _task(client, pid, "A")
        await client.post(f"/api/v1/projects/{pid}/plan/tasks/{a}")
        resp = await client.post(f"/api/v1/projects/{pid}/plan/tasks/{a}")
        assert resp.status_code == 409
        assert resp.json()["error"] == "already_exists"

    async def test_foreign_task(self, client: AsyncClient) -> None:
        pid = await _project(client)
        other = await _project(client, "Beta")
        foreign = await _task(client, other, "Foreign")
        resp = await client.post(f"/api/v1/projects/{pid}/plan/tasks/{foreign}")
        assert resp.status_code == 422
        assert resp.json()["error"] == "invariant_violation"

    async def test_invalid_position(self, client: AsyncClient) -> None:
        pid = await _project(client)
        a = await _task(client, pid, "A")
        await client.post(f"/api/v1/projects/{pid}/plan/tasks/{a}")
        for position in (0, 2):
            resp = await client.put(f"/api/v1/projects/{pid}/plan/tasks/{a}/position", json={"position": position})
            assert resp.status_code == 400
            assert resp.json()["error"] == "invalid_argument"

    async def test_remove_not_in_plan(self, client: AsyncClient) -> None:
        pid = await _project(client)
        a = await _task(client, pid, "A")
        resp = await client.delete(f"/api/v1/projects/{pid}/plan/tasks/{a}")
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_in_plan"


@pytest.mark.anyio
class TestBatchStatus:
    async def test_all_succeed(self, client: AsyncClient) -> None:
        pid = await _project(client)
        ids = [await _task(client, pid, t) for t in ("A", "B")]
        resp = await client.post(f"/api/v1/projects/{pid}/plan/tasks/batch", json={"task_ids": ids})
        assert resp.status_code == 200
        assert resp.json()["success_count"] == 2
        assert "errors" not in resp.json()

    async def test_partial(self, client: AsyncClient) -> None:
        pid = await _project(client)
        a = await _task(client, pid, "A")
        resp = await client.post(f"/api/v1/projects/{pid}/plan/tasks/batch", json={"task_ids": [a, "task-missing"]})
        assert resp.status_code == 206
        data = resp.json()
        assert data["failed_count"] == 1
        assert data["errors"][0].startswith("Task task-missing: ")

    async def test_none_succeed(self, client: AsyncClient) -> None:
        pid = await _project(client)
        resp = await client.request(
            "DELETE",
            f"/api/v1/projects/{pid}/plan/tasks/batch",
            json={"task_ids": ["task-x", "task-y"]},
        )
        assert resp.status_code == 400
        assert resp.json()["failed_count"] == 2

    async def test_empty_batch(self, client: AsyncClient) -> None:
        pid = await _project(client)
        resp = await client.post(f"/api/v1/projects/{pid}/plan/tasks/batch", json={"task_ids": []})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_argument"


@pytest.mark.anyio
class TestCatalogEndpoints:
    async def test_project_lifecycle(self, client: AsyncClient) -> None:
        pid = await _project(client)
        resp = await client.get("/api/v1/projects")
        assert resp.json()["total"] == 1

        resp = await client.get(f"/api/v1/projects/{pid}")
        assert resp.json()["project"]["name"] == "Alpha"

        resp = await client.delete(f"/api/v1/projects/{pid}")
        assert resp.status_code == 200
        resp = await client.get(f"/api/v1/projects/{pid}")
        assert resp.status_code == 404

    async def test_delete_task_cascades(self, client: AsyncClient) -> None:
        pid = await _project(client)
        a = await _task(client, pid, "A")
        b = await _task(client, pid, "B")
        await client.post(f"/api/v1/projects/{pid}/plan/tasks/batch", json={"task_ids": [a, b]})

        resp = await client.delete(f"/api/v1/tasks/{a}")
        assert resp.status_code == 200
        assert await _plan_ids(client, pid) == [b]
        resp = await client.get(f"/api/v1/projects/{pid}/plan/tasks/{b}/position")
        assert resp.json()["position"] == 1

    async def test_invalid_task_type(self, client: AsyncClient) -> None:
        pid = await _project(client)
        resp = await client.post(f"/api/v1/projects/{pid}/tasks", json={"title": "X", "task_type": "epic"})
        assert resp.status_code == 400


@pytest.mark.anyio
class TestApiKey:
    @pytest.fixture
    def app(self, tmp_path: Path):
        settings = resolve_settings(tmp_path, env={"PROJECT_PLANNER_API_KEY": "s3cret"})
        return create_app(settings=settings, enable_cors=False)

    async def test_health_is_public(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200

    async def test_missing_key(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/projects")
        assert resp.status_code == 401

    async def test_wrong_key(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/projects", headers={"X-API-Key": "nope"})
        assert resp.status_code == 401

    async def test_valid_key(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/projects", headers={"X-API-Key": "s3cret"})
        assert resp.status_code == 200
