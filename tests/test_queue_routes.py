from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from support_engine.core.config import Settings, get_settings
from support_engine.dependencies.services import get_queue_worker
from support_engine.main import create_app
from support_engine.queue import QueueTask, SweepReport


@pytest.fixture
def queue_client():
    app = create_app()
    worker = AsyncMock()

    async def override_worker():
        return worker

    app.dependency_overrides[get_queue_worker] = override_worker
    app.dependency_overrides[get_settings] = lambda: Settings(cron_secret="cron-secret")
    client = TestClient(app)
    try:
        yield client, worker
    finally:
        app.dependency_overrides.clear()


def test_run_task_returns_report(queue_client):
    client, worker = queue_client
    worker.run = AsyncMock(return_value=SweepReport(QueueTask.SEND_REMINDERS, examined=3, processed=["a"]))

    response = client.post("/chatbot/queue", json={"task": "send_reminders"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "task": "send_reminders", "examined": 3, "processed": 1}
    worker.run.assert_awaited_once_with(QueueTask.SEND_REMINDERS)


def test_unknown_task_is_rejected(queue_client):
    client, worker = queue_client

    response = client.post("/chatbot/queue", json={"task": "reindex"})

    assert response.status_code == 400
    assert response.json() == {"error": "Unknown task"}
    worker.run.assert_not_awaited()


def test_missing_task_is_rejected(queue_client):
    client, _ = queue_client

    response = client.post("/chatbot/queue", json={})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}


def test_stats_endpoint(queue_client):
    client, worker = queue_client
    worker.stats = AsyncMock(
        return_value={
            "total_waiting": 1,
            "needs_reminder": 1,
            "needs_escalation": 0,
            "tickets": [
                {
                    "id": "t-1",
                    "order_id": "1234",
                    "age_minutes": 150,
                    "status": "waiting_seller",
                    "created_at": datetime(2024, 5, 6, 9, tzinfo=timezone.utc).isoformat(),
                    "needs_reminder": True,
                    "needs_escalation": False,
                }
            ],
        }
    )

    response = client.get("/chatbot/queue")

    assert response.status_code == 200
    assert response.json()["needs_reminder"] == 1
    assert response.json()["tickets"][0]["order_id"] == "1234"


def test_cron_sweep_requires_secret(queue_client):
    client, worker = queue_client

    response = client.post("/cron/chatbot-queue", headers={"Authorization": "Bearer wrong"})

    assert response.status_code == 401
    worker.run_all.assert_not_awaited()


def test_cron_sweep_runs_every_task(queue_client):
    client, worker = queue_client
    worker.run_all = AsyncMock(return_value=[SweepReport(task) for task in QueueTask])

    response = client.post("/cron/chatbot-queue", headers={"Authorization": "Bearer cron-secret"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert [result["task"] for result in body["results"]] == [task.value for task in QueueTask]


def test_cron_sweep_unavailable_without_secret_configured(queue_client):
    client, worker = queue_client
    client.app.dependency_overrides[get_settings] = lambda: Settings(cron_secret=None)

    response = client.post("/cron/chatbot-queue", headers={"Authorization": "Bearer anything"})

    assert response.status_code == 503
    assert response.json() == {"detail": "Cron secret is not configured"}
    worker.run_all.assert_not_awaited()


def test_cron_health_is_public(queue_client):
    client, _ = queue_client

    response = client.get("/cron/chatbot-queue")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
