from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from .state import MessageChannel, MessageSender, TicketState, TicketType


@dataclass(slots=True)
class Ticket:
    """One tracked support conversation about an order and inquiry type."""

    id: UUID
    order_id: str
    type: TicketType
    state: TicketState
    last_message: str | None
    assigned_seller_id: str | None
    created_at: datetime
    updated_at: datetime
    timeout_checked_at: datetime | None = None
    last_reminder_at: datetime | None = None
    escalated_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class TicketMessage:
    """Immutable transcript entry belonging to a ticket."""

    id: UUID
    ticket_id: UUID
    sender: MessageSender
    body: str
    channel: MessageChannel
    created_at: datetime
