from __future__ import annotations

from uuid import uuid4

import pytest

from support_engine.tickets import (
    InvalidTicketTransitionError,
    MessageChannel,
    MessageSender,
    TicketNotFoundError,
    TicketState,
    TicketType,
)
from support_engine.tickets.service import PREVIEW_LENGTH, preview_text


@pytest.mark.asyncio
async def test_open_or_get_is_idempotent_while_ticket_active(ticket_service, metrics):
    first, created_first = await ticket_service.open_or_get("1234", TicketType.ORDER_ETA, seller_id="seller-1")
    second, created_second = await ticket_service.open_or_get("1234", TicketType.ORDER_ETA, seller_id="seller-1")

    assert created_first is True
    assert created_second is False
    assert first.id == second.id
    assert metrics.counter("support_tickets_created_total").value(labels={"type": "order_eta"}) == 1


@pytest.mark.asyncio
async def test_open_or_get_reuses_waiting_ticket(ticket_service):
    ticket, _ = await ticket_service.open_or_get("1234", TicketType.ORDER_ETA, seller_id="seller-1")
    await ticket_service.transition(ticket.id, TicketState.WAITING_SELLER)

    again, created = await ticket_service.open_or_get("1234", TicketType.ORDER_ETA, seller_id="seller-1")

    assert created is False
    assert again.id == ticket.id
    assert again.state == TicketState.WAITING_SELLER


@pytest.mark.asyncio
async def test_dedup_key_includes_ticket_type(ticket_service):
    eta, _ = await ticket_service.open_or_get("1234", TicketType.ORDER_ETA, seller_id="seller-1")
    cancel, created = await ticket_service.open_or_get("1234", TicketType.ORDER_CANCEL, seller_id="seller-1")

    assert created is True
    assert cancel.id != eta.id


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", [TicketState.CLOSED, TicketState.ANSWERED])
async def test_terminal_ticket_is_never_reopened(ticket_service, terminal):
    ticket, _ = await ticket_service.open_or_get("1234", TicketType.ORDER_ETA, seller_id="seller-1")
    await ticket_service.transition(ticket.id, TicketState.WAITING_SELLER)
    await ticket_service.transition(ticket.id, terminal)

    for target in TicketState:
        with pytest.raises(InvalidTicketTransitionError):
            await ticket_service.transition(ticket.id, target)

    fresh, created = await ticket_service.open_or_get("1234", TicketType.ORDER_ETA, seller_id="seller-1")
    assert created is True
    assert fresh.id != ticket.id
    assert fresh.state == TicketState.OPEN
    assert (await ticket_service.get_ticket(ticket.id)).state == terminal


@pytest.mark.asyncio
async def test_transition_rejects_skipping_waiting_seller(ticket_service):
    ticket, _ = await ticket_service.open_or_get("1234", TicketType.ORDER_ETA, seller_id="seller-1")

    with pytest.raises(InvalidTicketTransitionError):
        await ticket_service.transition(ticket.id, TicketState.ANSWERED)


@pytest.mark.asyncio
async def test_transition_stores_preview(ticket_service):
    ticket, _ = await ticket_service.open_or_get("1234", TicketType.ORDER_ETA, seller_id="seller-1")

    updated = await ticket_service.transition(
        ticket.id, TicketState.WAITING_SELLER, last_message="  Cât   mai\ndurează?  "
    )

    assert updated.last_message == "Cât mai durează?"


@pytest.mark.asyncio
async def test_get_ticket_missing_raises(ticket_service):
    with pytest.raises(TicketNotFoundError):
        await ticket_service.get_ticket(uuid4())


@pytest.mark.asyncio
async def test_transcript_is_ordered_append_only(ticket_service, clock):
    ticket, _ = await ticket_service.open_or_get("1234", TicketType.ORDER_ETA, seller_id="seller-1")
    await ticket_service.append_message(
        ticket.id, sender=MessageSender.CUSTOMER, body="Unde e comanda?", channel=MessageChannel.WEB
    )
    clock.advance(seconds=1)
    await ticket_service.append_message(
        ticket.id, sender=MessageSender.BOT, body="Revenim.", channel=MessageChannel.WEB
    )

    transcript = await ticket_service.get_transcript(ticket.id)

    assert [message.sender for message in transcript] == [MessageSender.CUSTOMER, MessageSender.BOT]
    assert transcript[0].created_at < transcript[1].created_at


@pytest.mark.asyncio
async def test_stats_counts_every_state(ticket_service):
    ticket, _ = await ticket_service.open_or_get("1234", TicketType.ORDER_ETA, seller_id="seller-1")
    await ticket_service.open_or_get("5678", TicketType.ORDER_ETA, seller_id="seller-1")
    await ticket_service.close_ticket(ticket.id, note="manual")

    stats = await ticket_service.stats()

    assert stats[TicketState.OPEN] == 1
    assert stats[TicketState.CLOSED] == 1
    assert stats[TicketState.ANSWERED] == 0


def test_preview_text_truncates():
    assert preview_text(None) is None
    assert len(preview_text("x" * 500)) == PREVIEW_LENGTH
