from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Sequence
from uuid import UUID, uuid4

import pytest

from support_engine.channels import MessageTemplates, SendResult
from support_engine.ingest import ConversationEngine
from support_engine.metrics import SUPPORT_METRIC_DEFINITIONS, MetricsRegistry
from support_engine.nlu import IntentClassifier
from support_engine.orders import BuyerContact, OrderLocator, OrderView, SellerContact
from support_engine.queue import QueueWorker
from support_engine.tickets import (
    ACTIVE_STATES,
    MessageChannel,
    MessageSender,
    Ticket,
    TicketMessage,
    TicketService,
    TicketState,
    TicketType,
)

START = datetime(2024, 5, 6, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class InMemoryTicketRepository:
    """Mirrors the guarded updates of ``TicketRepository`` without a database."""

    def __init__(self):
        self.tickets: dict[UUID, Ticket] = {}
        self.messages: list[TicketMessage] = []

    async def ensure_schema(self) -> None:
        return None

    async def insert_ticket(self, *, order_id, ticket_type, state, assigned_seller_id, now) -> Ticket:
        ticket = Ticket(
            id=uuid4(),
            order_id=order_id,
            type=ticket_type,
            state=state,
            last_message=None,
            assigned_seller_id=assigned_seller_id,
            created_at=now,
            updated_at=now,
        )
        self.tickets[ticket.id] = ticket
        return replace(ticket)

    async def get_ticket(self, ticket_id):
        ticket = self.tickets.get(ticket_id)
        return replace(ticket) if ticket else None

    async def find_active(self, order_id, ticket_type):
        matches = [
            ticket
            for ticket in self.tickets.values()
            if ticket.order_id == order_id and ticket.type == ticket_type and ticket.state in ACTIVE_STATES
        ]
        return replace(matches[-1]) if matches else None

    async def list_tickets(self, *, state=None):
        tickets = [ticket for ticket in self.tickets.values() if state is None or ticket.state == state]
        return [replace(ticket) for ticket in tickets]

    async def update_state(self, ticket_id, *, expected, new_state, last_message, now):
        ticket = self.tickets.get(ticket_id)
        if ticket is None or ticket.state != expected:
            return None
        ticket.state = new_state
        if last_message is not None:
            ticket.last_message = last_message
        ticket.updated_at = now
        return replace(ticket)

    async def mark_timeout_checked(self, ticket_id, now):
        return self._set_marker(ticket_id, "timeout_checked_at", now)

    async def claim_reminder(self, ticket_id, now):
        return self._set_marker(ticket_id, "last_reminder_at", now)

    async def escalate(self, ticket_id, now, last_message):
        ticket = self.tickets.get(ticket_id)
        if ticket is None or ticket.state != TicketState.WAITING_SELLER or ticket.escalated_at is not None:
            return None
        ticket.state = TicketState.CLOSED
        ticket.escalated_at = now
        ticket.last_message = last_message
        ticket.updated_at = now
        return replace(ticket)

    async def find_waiting_for_seller(self, seller_id, *, order_id=None):
        matches = [
            ticket
            for ticket in self.tickets.values()
            if ticket.assigned_seller_id == seller_id
            and ticket.state == TicketState.WAITING_SELLER
            and (order_id is None or ticket.order_id == order_id)
        ]
        return replace(matches[-1]) if matches else None

    async def find_latest_escalated_for_seller(self, seller_id):
        matches = [
            ticket
            for ticket in self.tickets.values()
            if ticket.assigned_seller_id == seller_id
            and ticket.state == TicketState.CLOSED
            and ticket.escalated_at is not None
        ]
        return replace(matches[-1]) if matches else None

    async def count_by_state(self):
        counts = {state: 0 for state in TicketState}
        for ticket in self.tickets.values():
            counts[ticket.state] += 1
        return counts

    async def insert_message(self, *, ticket_id, sender, body, channel, now):
        message = TicketMessage(
            id=uuid4(),
            ticket_id=ticket_id,
            sender=sender,
            body=body,
            channel=channel,
            created_at=now,
        )
        self.messages.append(message)
        return message

    async def list_messages(self, ticket_id):
        return [message for message in self.messages if message.ticket_id == ticket_id]

    def _set_marker(self, ticket_id, attribute, now):
        ticket = self.tickets.get(ticket_id)
        if ticket is None or ticket.state != TicketState.WAITING_SELLER or getattr(ticket, attribute) is not None:
            return None
        setattr(ticket, attribute, now)
        ticket.updated_at = now
        return replace(ticket)

    def add_waiting(self, order_id: str, *, created_at: datetime, seller_id: str = "seller-1") -> Ticket:
        ticket = Ticket(
            id=uuid4(),
            order_id=order_id,
            type=TicketType.ORDER_ETA,
            state=TicketState.WAITING_SELLER,
            last_message=None,
            assigned_seller_id=seller_id,
            created_at=created_at,
            updated_at=created_at,
        )
        self.tickets[ticket.id] = ticket
        return ticket

    def transcript(self, ticket_id) -> list[tuple[MessageSender, MessageChannel, str]]:
        return [
            (message.sender, message.channel, message.body)
            for message in self.messages
            if message.ticket_id == ticket_id
        ]


class InMemoryOrderGateway:
    def __init__(self):
        self.orders: dict[str, OrderView] = {}
        self.buyer_emails: dict[str, str] = {}
        self.buyer_users: dict[str, str] = {}
        self.seller_phones: dict[str, str] = {}
        self.eta_updates: list[tuple[str, str]] = []
        self.get_order_calls: list[str] = []

    def add_order(self, order: OrderView) -> OrderView:
        self.orders[order.id] = order
        if order.seller.whatsapp_number:
            self.seller_phones[order.seller.whatsapp_number] = order.seller.id
        return order

    async def get_order(self, order_id: str):
        self.get_order_calls.append(order_id)
        return self.orders.get(order_id)

    async def latest_order_for_buyer(self, buyer_id: str):
        matches = [order for order in self.orders.values() if order.buyer.id == buyer_id]
        return matches[-1] if matches else None

    async def find_buyer_id_by_email(self, email: str):
        return self.buyer_emails.get(email.lower())

    async def find_buyer_id_by_phone(self, phone_variants: Sequence[str]):
        for order in self.orders.values():
            if order.buyer.phone in phone_variants:
                return order.buyer.id
        return None

    async def find_buyer_id_by_user(self, user_id: str):
        return self.buyer_users.get(user_id)

    async def find_seller_id_by_phone(self, phone_variants: Sequence[str]):
        for phone, seller_id in self.seller_phones.items():
            if phone in phone_variants:
                return seller_id
        return None

    async def update_eta(self, order_id: str, eta_text: str) -> bool:
        order = self.orders.get(order_id)
        if order is None:
            return False
        self.orders[order_id] = replace(order, eta_text=eta_text)
        self.eta_updates.append((order_id, eta_text))
        return True


class RecordingChannel:
    def __init__(self, result: SendResult | None = None):
        self.sent: list[tuple[str, str]] = []
        self.result = result or SendResult(success=True, message_id="wamid.test")

    async def send_text(self, to: str, body: str) -> SendResult:
        self.sent.append((to, body))
        return self.result


def make_order(
    order_id: str = "1234",
    *,
    eta_text: str | None = None,
    status: str = "paid",
    seller_id: str = "seller-1",
    seller_name: str = "Flori de Mai",
    seller_whatsapp: str | None = "0722000111",
    buyer_id: str = "buyer-1",
    buyer_phone: str | None = "0733000222",
    whatsapp_opt_in: bool = True,
) -> OrderView:
    return OrderView(
        id=order_id,
        status=status,
        eta_text=eta_text,
        seller=SellerContact(id=seller_id, name=seller_name, whatsapp_number=seller_whatsapp),
        buyer=BuyerContact(id=buyer_id, phone=buyer_phone, whatsapp_opt_in=whatsapp_opt_in),
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry(SUPPORT_METRIC_DEFINITIONS)


@pytest.fixture
def ticket_repository() -> InMemoryTicketRepository:
    return InMemoryTicketRepository()


@pytest.fixture
def ticket_service(ticket_repository, clock, metrics) -> TicketService:
    return TicketService(ticket_repository, clock=clock, metrics=metrics)


@pytest.fixture
def order_gateway() -> InMemoryOrderGateway:
    return InMemoryOrderGateway()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def engine(ticket_service, order_gateway, channel, metrics) -> ConversationEngine:
    return ConversationEngine(
        classifier=IntentClassifier(metrics=metrics),
        locator=OrderLocator(order_gateway),
        orders=order_gateway,
        tickets=ticket_service,
        channel=channel,
        templates=MessageTemplates(),
        metrics=metrics,
    )


@pytest.fixture
def worker(ticket_service, order_gateway, channel, metrics) -> QueueWorker:
    return QueueWorker(
        tickets=ticket_service,
        orders=order_gateway,
        channel=channel,
        metrics=metrics,
    )
