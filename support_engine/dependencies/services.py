from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request

from support_engine.ingest import ConversationEngine
from support_engine.queue import QueueWorker
from support_engine.tickets import TicketService


def _from_state(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} is not configured")
    return service


async def get_engine(request: Request) -> ConversationEngine:
    return _from_state(request, "engine", "Conversation engine")


async def get_queue_worker(request: Request) -> QueueWorker:
    return _from_state(request, "queue_worker", "Queue worker")


async def get_ticket_service(request: Request) -> TicketService:
    return _from_state(request, "ticket_service", "Ticket service")


EngineDep = Annotated[ConversationEngine, Depends(get_engine)]
QueueWorkerDep = Annotated[QueueWorker, Depends(get_queue_worker)]
TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
