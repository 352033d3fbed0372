from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

from support_engine.metrics import MetricsRegistry, metrics_registry

from .models import Ticket, TicketMessage
from .repository import TicketRepository
from .state import MessageChannel, MessageSender, TicketState, TicketStateMachine, TicketType

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200

_WHITESPACE_RE = re.compile(r"\s+")


class TicketServiceError(RuntimeError):
    """Base error for ticket service issues."""


class TicketNotFoundError(TicketServiceError):
    """Raised when a ticket could not be located."""


class InvalidTicketTransitionError(TicketServiceError):
    """Raised when attempting to transition to an invalid state."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def preview_text(text: str | None) -> str | None:
    """Collapse whitespace and cut ``text`` down to a list-view preview."""

    if text is None:
        return None
    normalized = unicodedata.normalize("NFKC", text)
    normalized = _WHITESPACE_RE.sub(" ", normalized).strip()
    return normalized[:PREVIEW_LENGTH]


@dataclass(slots=True)
class TicketService:
    """Ticket lifecycle orchestration on top of :class:`TicketRepository`.

    Creation is check-then-insert against the (order, type) dedup key. Two
    identical inquiries racing each other can both miss the lookup and open
    two tickets; that is tolerated, the second one is only noise for support.
    """

    repository: TicketRepository
    clock: Callable[[], datetime] = utcnow
    metrics: MetricsRegistry = field(default=metrics_registry)

    def now(self) -> datetime:
        return self.clock()

    async def ensure_schema(self) -> None:
        await self.repository.ensure_schema()

    async def open_or_get(
        self,
        order_id: str,
        ticket_type: TicketType,
        *,
        seller_id: str | None,
    ) -> tuple[Ticket, bool]:
        """Return the in-flight ticket for the key, opening one if there is none."""

        existing = await self.repository.find_active(order_id, ticket_type)
        if existing is not None:
            return existing, False

        ticket = await self.repository.insert_ticket(
            order_id=order_id,
            ticket_type=ticket_type,
            state=TicketStateMachine.initial_state(),
            assigned_seller_id=seller_id,
            now=self.now(),
        )
        self.metrics.counter("support_tickets_created_total").inc(labels={"type": ticket_type.value})
        logger.info("Opened %s ticket %s for order %s", ticket_type.value, ticket.id, order_id)
        return ticket, True

    async def get_ticket(self, ticket_id: UUID) -> Ticket:
        ticket = await self.repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def find_active(self, order_id: str, ticket_type: TicketType) -> Ticket | None:
        return await self.repository.find_active(order_id, ticket_type)

    async def list_tickets(self, *, state: TicketState | None = None) -> list[Ticket]:
        return await self.repository.list_tickets(state=state)

    async def list_waiting(self) -> list[Ticket]:
        return await self.repository.list_tickets(state=TicketState.WAITING_SELLER)

    async def transition(
        self,
        ticket_id: UUID,
        new_state: TicketState,
        *,
        last_message: str | None = None,
    ) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        if not TicketStateMachine.can_transition(ticket.state, new_state):
            raise InvalidTicketTransitionError(
                f"Cannot transition ticket {ticket_id} {ticket.state.value} -> {new_state.value}"
            )

        updated = await self.repository.update_state(
            ticket_id,
            expected=ticket.state,
            new_state=new_state,
            last_message=preview_text(last_message),
            now=self.now(),
        )
        if updated is None:
            raise InvalidTicketTransitionError(
                f"Ticket {ticket_id} left state {ticket.state.value} before it could move to {new_state.value}"
            )
        if updated.state != ticket.state:
            logger.info("Ticket %s: %s -> %s", ticket_id, ticket.state.value, new_state.value)
        return updated

    async def close_ticket(self, ticket_id: UUID, *, note: str | None = None) -> Ticket:
        return await self.transition(ticket_id, TicketState.CLOSED, last_message=note)

    async def append_message(
        self,
        ticket_id: UUID,
        *,
        sender: MessageSender,
        body: str,
        channel: MessageChannel,
    ) -> TicketMessage:
        return await self.repository.insert_message(
            ticket_id=ticket_id,
            sender=sender,
            body=body,
            channel=channel,
            now=self.now(),
        )

    async def get_transcript(self, ticket_id: UUID) -> list[TicketMessage]:
        await self.get_ticket(ticket_id)
        return await self.repository.list_messages(ticket_id)

    async def mark_timeout_checked(self, ticket_id: UUID) -> Ticket | None:
        """Set the timeout marker; ``None`` when it was already set or the ticket moved on."""

        return await self.repository.mark_timeout_checked(ticket_id, self.now())

    async def claim_reminder(self, ticket_id: UUID) -> Ticket | None:
        """Reserve the single reminder slot of a waiting ticket."""

        return await self.repository.claim_reminder(ticket_id, self.now())

    async def escalate(self, ticket_id: UUID, *, note: str) -> Ticket | None:
        """Close a waiting ticket for seller silence; ``None`` if already escalated or moved."""

        ticket = await self.repository.escalate(ticket_id, self.now(), preview_text(note) or "")
        if ticket is not None:
            logger.info("Ticket %s: waiting_seller -> closed (escalated)", ticket_id)
        return ticket

    async def find_waiting_for_seller(self, seller_id: str, *, order_id: str | None = None) -> Ticket | None:
        return await self.repository.find_waiting_for_seller(seller_id, order_id=order_id)

    async def find_latest_escalated_for_seller(self, seller_id: str) -> Ticket | None:
        return await self.repository.find_latest_escalated_for_seller(seller_id)

    async def stats(self) -> dict[TicketState, int]:
        return await self.repository.count_by_state()
