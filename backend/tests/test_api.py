"""
Tests for the sync and material processing API routes.

The routers are mounted on a bare FastAPI app whose state carries a
container built from the in-memory fakes, so no lifespan, database or
Redis is involved.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from studypilot.api import api_router
from studypilot.models.material import MaterialType
from studypilot.schemas.sync import SyncableContent

from tests.conftest import FIXED_NOW_MS


@pytest.fixture
def app(coordinator, pipeline, repository, content_store) -> FastAPI:
    app = FastAPI()
    app.include_router(api_router, prefix="/api/v1")
    app.state.container = SimpleNamespace(
        sync_coordinator=coordinator,
        content_store=content_store,
        pipeline=pipeline,
        repository=repository,
    )
    return app


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
class TestSyncRoutes:
    async def test_trigger_sync(self, client, delta_source):
        delta_source.responses = [SyncableContent(topics=[{"id": 1}])]

        response = await client.post("/api/v1/sync")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["synced_data"]["topics"] == [{"id": 1}]
        assert body["synced_data"]["lastSyncTimestamp"] == FIXED_NOW_MS

    async def test_trigger_sync_offline(self, client, oracle):
        oracle.connected = False

        response = await client.post("/api/v1/sync")

        assert response.status_code == 503
        assert response.json()["detail"] == "No internet connection"

    async def test_trigger_sync_failure(self, client, delta_source):
        delta_source.error = RuntimeError("boom")

        response = await client.post("/api/v1/sync")

        assert response.status_code == 503
        assert response.json()["detail"] == "Sync failed"

    async def test_status_before_and_after_sync(self, client):
        before = (await client.get("/api/v1/sync/status")).json()
        await client.post("/api/v1/sync")
        after = (await client.get("/api/v1/sync/status")).json()

        assert before == {"available_offline": False, "last_sync": None, "entity_counts": {}}
        assert after["available_offline"] is True
        assert after["last_sync"] == FIXED_NOW_MS

    async def test_history(self, client):
        await client.post("/api/v1/sync")

        response = await client.get("/api/v1/sync/history", params={"limit": 5})

        assert response.status_code == 200
        assert len(response.json()) == 1
        assert (await client.get("/api/v1/sync/history", params={"limit": 11})).status_code == 422

    async def test_offline_content(self, client, delta_source):
        assert (await client.get("/api/v1/sync/content/topics")).status_code == 404

        delta_source.responses = [SyncableContent(quizzes=[{"id": "q1"}])]
        await client.post("/api/v1/sync")

        response = await client.get("/api/v1/sync/content/quizzes")
        assert response.status_code == 200
        assert response.json() == [{"id": "q1"}]

        assert (await client.get("/api/v1/sync/content/unknown")).status_code == 404

    async def test_content_view_offline(self, client, oracle):
        oracle.connected = False

        response = await client.get("/api/v1/sync/content/topics/view")

        assert response.status_code == 200
        assert response.json()["is_offline"] is True


@pytest.mark.asyncio
class TestOfflineItemRoutes:
    async def test_save_read_and_remove(self, client):
        item = {
            "id": "quiz-1",
            "type": "quiz",
            "title": "Lift basics",
            "content": {"questions": 3},
            "last_updated": "2024-05-01T12:00:00Z",
        }

        saved = await client.post("/api/v1/sync/items", json=item)
        listed = await client.get("/api/v1/sync/items")
        fetched = await client.get("/api/v1/sync/items/quiz-1")
        usage = (await client.get("/api/v1/sync/items/usage")).json()

        assert saved.status_code == 201
        assert [i["id"] for i in listed.json()] == ["quiz-1"]
        assert fetched.json()["content"] == {"questions": 3}
        assert usage["total"] == 10_000
        assert 0 < usage["used"] < usage["total"]

        removed = await client.delete("/api/v1/sync/items/quiz-1")

        assert removed.status_code == 204
        assert (await client.get("/api/v1/sync/items/quiz-1")).status_code == 404

    async def test_over_storage_cap(self, client, content_store):
        item = {
            "id": "lesson-1",
            "type": "lesson",
            "title": "Long lesson",
            "content": "x" * 20_000,
            "last_updated": "2024-05-01T12:00:00Z",
        }

        response = await client.post("/api/v1/sync/items", json=item)

        assert response.status_code == 507
        assert "Storage limit exceeded" in response.json()["detail"]
        assert await content_store.list_items() == []

    async def test_rejects_unknown_item_type(self, client):
        item = {"id": "n1", "type": "note", "title": "Note", "last_updated": "2024-05-01T12:00:00Z"}

        response = await client.post("/api/v1/sync/items", json=item)

        assert response.status_code == 422

    async def test_clear_items(self, client, content_store):
        for item_id in ("card-1", "card-2"):
            await client.post("/api/v1/sync/items", json={
                "id": item_id,
                "type": "flashcard",
                "title": item_id,
                "last_updated": "2024-05-01T12:00:00Z",
            })

        response = await client.delete("/api/v1/sync/items")

        assert response.status_code == 204
        assert (await client.get("/api/v1/sync/items")).json() == []


@pytest.mark.asyncio
class TestMaterialRoutes:
    async def test_queue_processing(self, client, repository):
        repository.add_material(1, MaterialType.TEXT, "text")
        task = MagicMock()
        task.delay.return_value = SimpleNamespace(id="celery-task-1")

        with patch("studypilot.api.routes.materials.process_material", task):
            response = await client.post("/api/v1/materials/1/process")

        assert response.status_code == 202
        assert response.json() == {"material_id": 1, "task_id": "celery-task-1", "status": "queued"}
        task.delay.assert_called_once_with(1)

    async def test_queue_unknown_material(self, client):
        task = MagicMock()
        with patch("studypilot.api.routes.materials.process_material", task):
            response = await client.post("/api/v1/materials/99/process")

        assert response.status_code == 404
        task.delay.assert_not_called()

    async def test_processing_status(self, client, repository, pipeline):
        repository.add_material(1, MaterialType.TEXT, "Wings generate lift.")
        await pipeline.process_new_material(1)

        response = await client.get("/api/v1/materials/1/processing-status")

        body = response.json()
        assert response.status_code == 200
        assert body["cached"] is False
        assert [t["status"] for t in body["tasks"]] == ["completed"] * 3

    async def test_processing_status_served_from_cache(self, client, repository, pipeline):
        repository.add_material(1, MaterialType.TEXT, "Wings generate lift.")
        await pipeline.process_new_material(1)
        await client.get("/api/v1/materials/1/processing-status")
        repository.unavailable = True

        response = await client.get("/api/v1/materials/1/processing-status")

        assert response.status_code == 200
        assert response.json()["cached"] is True

    async def test_processing_status_unavailable(self, client, repository):
        repository.unavailable = True

        response = await client.get("/api/v1/materials/5/processing-status")

        assert response.status_code == 503
