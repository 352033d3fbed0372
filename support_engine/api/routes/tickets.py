from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from support_engine.dependencies.auth import CurrentSupportUser
from support_engine.dependencies.services import TicketServiceDep
from support_engine.tickets import (
    InvalidTicketTransitionError,
    MessageChannel,
    MessageSender,
    Ticket,
    TicketMessage,
    TicketNotFoundError,
    TicketState,
    TicketType,
)

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: str
    type: TicketType
    state: TicketState
    last_message: str | None
    assigned_seller_id: str | None
    created_at: datetime
    updated_at: datetime
    last_reminder_at: datetime | None
    escalated_at: datetime | None


class TicketMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ticket_id: UUID
    sender: MessageSender
    body: str
    channel: MessageChannel
    created_at: datetime


class TicketCloseRequest(BaseModel):
    note: str | None = Field(default=None, max_length=500)


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def _to_message_response(message: TicketMessage) -> TicketMessageResponse:
    return TicketMessageResponse.model_validate(message)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    service: TicketServiceDep,
    _: CurrentSupportUser,
    state: TicketState | None = Query(default=None),
) -> list[TicketResponse]:
    tickets = await service.list_tickets(state=state)
    return [_to_response(ticket) for ticket in tickets]


@router.get("/stats")
async def ticket_stats(service: TicketServiceDep, _: CurrentSupportUser) -> dict[str, int]:
    counts = await service.stats()
    return {state.value: count for state, count in counts.items()}


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: UUID, service: TicketServiceDep, _: CurrentSupportUser) -> TicketResponse:
    try:
        ticket = await service.get_ticket(ticket_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _to_response(ticket)


@router.get("/{ticket_id}/messages", response_model=list[TicketMessageResponse])
async def get_ticket_messages(
    ticket_id: UUID, service: TicketServiceDep, _: CurrentSupportUser
) -> list[TicketMessageResponse]:
    try:
        messages = await service.get_transcript(ticket_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [_to_message_response(message) for message in messages]


@router.post("/{ticket_id}/close", response_model=TicketResponse)
async def close_ticket(
    ticket_id: UUID,
    payload: TicketCloseRequest,
    service: TicketServiceDep,
    user: CurrentSupportUser,
) -> TicketResponse:
    note = payload.note or f"Closed by {user.username}"
    try:
        ticket = await service.close_ticket(ticket_id, note=note)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTicketTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    await service.append_message(
        ticket.id, sender=MessageSender.BOT, body=note, channel=MessageChannel.SYSTEM
    )
    return _to_response(ticket)
