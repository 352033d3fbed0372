from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from support_engine.dependencies.auth import require_cron_secret
from support_engine.dependencies.services import QueueWorkerDep
from support_engine.queue import QueueTask

router = APIRouter(tags=["queue"])


class QueueTaskRequest(BaseModel):
    task: str


@router.post("/chatbot/queue")
async def run_queue_task(payload: QueueTaskRequest, worker: QueueWorkerDep) -> JSONResponse:
    try:
        task = QueueTask(payload.task)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Unknown task"})
    report = await worker.run(task)
    return JSONResponse(content={"status": "ok", **report.as_dict()})


@router.get("/chatbot/queue")
async def queue_stats(worker: QueueWorkerDep) -> dict[str, Any]:
    return await worker.stats()


@router.post("/cron/chatbot-queue", dependencies=[Depends(require_cron_secret)])
async def run_scheduled_sweep(worker: QueueWorkerDep) -> dict[str, Any]:
    reports = await worker.run_all()
    return {"status": "ok", "results": [report.as_dict() for report in reports]}


@router.get("/cron/chatbot-queue")
async def scheduled_sweep_health() -> dict[str, str]:
    return {"status": "ok", "endpoint": "cron/chatbot-queue"}
