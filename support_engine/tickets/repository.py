from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

import asyncpg

from .models import Ticket, TicketMessage
from .state import ACTIVE_STATES, MessageChannel, MessageSender, TicketState, TicketType

_TICKET_COLUMNS = """
    id, order_id, type, state, last_message, assigned_seller_id,
    timeout_checked_at, last_reminder_at, escalated_at, created_at, updated_at
"""


class TicketRepository:
    """Data access for ``support_tickets`` and their append-only transcript."""

    _CREATE_TICKETS_SQL = """
    CREATE TABLE IF NOT EXISTS support_tickets (
        id UUID PRIMARY KEY,
        order_id TEXT NOT NULL,
        type TEXT NOT NULL,
        state TEXT NOT NULL,
        last_message TEXT NULL,
        assigned_seller_id TEXT NULL,
        timeout_checked_at TIMESTAMPTZ NULL,
        last_reminder_at TIMESTAMPTZ NULL,
        escalated_at TIMESTAMPTZ NULL,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )
    """

    _CREATE_TICKET_INDEX_SQL = """
    CREATE INDEX IF NOT EXISTS support_tickets_dedup_idx
    ON support_tickets (order_id, type, state)
    """

    _CREATE_MESSAGES_SQL = """
    CREATE TABLE IF NOT EXISTS support_ticket_messages (
        id UUID PRIMARY KEY,
        ticket_id UUID NOT NULL REFERENCES support_tickets(id),
        sender TEXT NOT NULL,
        body TEXT NOT NULL,
        channel TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL
    )
    """

    _INSERT_TICKET_SQL = f"""
    INSERT INTO support_tickets (id, order_id, type, state, assigned_seller_id, created_at, updated_at)
    VALUES ($1, $2, $3, $4, $5, $6, $6)
    RETURNING {_TICKET_COLUMNS}
    """

    _SELECT_TICKET_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM support_tickets
    WHERE id = $1
    """

    _FIND_ACTIVE_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM support_tickets
    WHERE order_id = $1 AND type = $2 AND state = ANY($3::text[])
    ORDER BY created_at DESC
    LIMIT 1
    """

    _LIST_TICKETS_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM support_tickets
    ORDER BY created_at DESC
    """

    _LIST_TICKETS_BY_STATE_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM support_tickets
    WHERE state = $1
    ORDER BY created_at ASC
    """

    _UPDATE_STATE_SQL = f"""
    UPDATE support_tickets
    SET state = $3,
        last_message = COALESCE($4, last_message),
        updated_at = $5
    WHERE id = $1 AND state = $2
    RETURNING {_TICKET_COLUMNS}
    """

    _MARK_TIMEOUT_CHECKED_SQL = f"""
    UPDATE support_tickets
    SET timeout_checked_at = $2, updated_at = $2
    WHERE id = $1 AND state = 'waiting_seller' AND timeout_checked_at IS NULL
    RETURNING {_TICKET_COLUMNS}
    """

    _CLAIM_REMINDER_SQL = f"""
    UPDATE support_tickets
    SET last_reminder_at = $2, updated_at = $2
    WHERE id = $1 AND state = 'waiting_seller' AND last_reminder_at IS NULL
    RETURNING {_TICKET_COLUMNS}
    """

    _ESCALATE_SQL = f"""
    UPDATE support_tickets
    SET state = 'closed',
        escalated_at = $2,
        last_message = $3,
        updated_at = $2
    WHERE id = $1 AND state = 'waiting_seller' AND escalated_at IS NULL
    RETURNING {_TICKET_COLUMNS}
    """

    _FIND_WAITING_FOR_SELLER_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM support_tickets
    WHERE assigned_seller_id = $1 AND state = 'waiting_seller'
    ORDER BY created_at DESC
    LIMIT 1
    """

    _FIND_WAITING_FOR_SELLER_ORDER_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM support_tickets
    WHERE assigned_seller_id = $1 AND state = 'waiting_seller' AND order_id = $2
    ORDER BY created_at DESC
    LIMIT 1
    """

    _FIND_LATEST_ESCALATED_FOR_SELLER_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM support_tickets
    WHERE assigned_seller_id = $1 AND state = 'closed' AND escalated_at IS NOT NULL
    ORDER BY escalated_at DESC
    LIMIT 1
    """

    _COUNT_BY_STATE_SQL = """
    SELECT state, COUNT(*) AS count
    FROM support_tickets
    GROUP BY state
    """

    _INSERT_MESSAGE_SQL = """
    INSERT INTO support_ticket_messages (id, ticket_id, sender, body, channel, created_at)
    VALUES ($1, $2, $3, $4, $5, $6)
    RETURNING id, ticket_id, sender, body, channel, created_at
    """

    _SELECT_MESSAGES_SQL = """
    SELECT id, ticket_id, sender, body, channel, created_at
    FROM support_ticket_messages
    WHERE ticket_id = $1
    ORDER BY created_at ASC, id ASC
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def ensure_schema(self) -> None:
        async with self._pool.acquire() as connection:
            await connection.execute(self._CREATE_TICKETS_SQL)
            await connection.execute(self._CREATE_TICKET_INDEX_SQL)
            await connection.execute(self._CREATE_MESSAGES_SQL)

    async def insert_ticket(
        self,
        *,
        order_id: str,
        ticket_type: TicketType,
        state: TicketState,
        assigned_seller_id: str | None,
        now: datetime,
    ) -> Ticket:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(
                self._INSERT_TICKET_SQL,
                uuid4(),
                order_id,
                ticket_type.value,
                state.value,
                assigned_seller_id,
                now,
            )
        if row is None:
            raise RuntimeError("Failed to insert support ticket")
        return self._row_to_ticket(row)

    async def get_ticket(self, ticket_id: UUID) -> Ticket | None:
        return await self._fetch_ticket(self._SELECT_TICKET_SQL, ticket_id)

    async def find_active(self, order_id: str, ticket_type: TicketType) -> Ticket | None:
        states = sorted(state.value for state in ACTIVE_STATES)
        return await self._fetch_ticket(self._FIND_ACTIVE_SQL, order_id, ticket_type.value, states)

    async def list_tickets(self, *, state: TicketState | None = None) -> list[Ticket]:
        async with self._pool.acquire() as connection:
            if state is None:
                rows = await connection.fetch(self._LIST_TICKETS_SQL)
            else:
                rows = await connection.fetch(self._LIST_TICKETS_BY_STATE_SQL, state.value)
        return [self._row_to_ticket(row) for row in rows]

    async def update_state(
        self,
        ticket_id: UUID,
        *,
        expected: TicketState,
        new_state: TicketState,
        last_message: str | None,
        now: datetime,
    ) -> Ticket | None:
        """Move ``ticket_id`` to ``new_state`` only if it is still in ``expected``."""

        return await self._fetch_ticket(
            self._UPDATE_STATE_SQL, ticket_id, expected.value, new_state.value, last_message, now
        )

    async def mark_timeout_checked(self, ticket_id: UUID, now: datetime) -> Ticket | None:
        return await self._fetch_ticket(self._MARK_TIMEOUT_CHECKED_SQL, ticket_id, now)

    async def claim_reminder(self, ticket_id: UUID, now: datetime) -> Ticket | None:
        return await self._fetch_ticket(self._CLAIM_REMINDER_SQL, ticket_id, now)

    async def escalate(self, ticket_id: UUID, now: datetime, last_message: str) -> Ticket | None:
        return await self._fetch_ticket(self._ESCALATE_SQL, ticket_id, now, last_message)

    async def find_waiting_for_seller(self, seller_id: str, *, order_id: str | None = None) -> Ticket | None:
        if order_id is None:
            return await self._fetch_ticket(self._FIND_WAITING_FOR_SELLER_SQL, seller_id)
        return await self._fetch_ticket(self._FIND_WAITING_FOR_SELLER_ORDER_SQL, seller_id, order_id)

    async def find_latest_escalated_for_seller(self, seller_id: str) -> Ticket | None:
        return await self._fetch_ticket(self._FIND_LATEST_ESCALATED_FOR_SELLER_SQL, seller_id)

    async def count_by_state(self) -> dict[TicketState, int]:
        async with self._pool.acquire() as connection:
            rows = await connection.fetch(self._COUNT_BY_STATE_SQL)
        counts = {state: 0 for state in TicketState}
        for row in rows:
            counts[TicketState(str(row["state"]))] = int(row["count"])
        return counts

    async def insert_message(
        self,
        *,
        ticket_id: UUID,
        sender: MessageSender,
        body: str,
        channel: MessageChannel,
        now: datetime,
    ) -> TicketMessage:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(
                self._INSERT_MESSAGE_SQL,
                uuid4(),
                ticket_id,
                sender.value,
                body,
                channel.value,
                now,
            )
        if row is None:
            raise RuntimeError("Failed to insert ticket message")
        return self._row_to_message(row)

    async def list_messages(self, ticket_id: UUID) -> list[TicketMessage]:
        async with self._pool.acquire() as connection:
            rows = await connection.fetch(self._SELECT_MESSAGES_SQL, ticket_id)
        return [self._row_to_message(row) for row in rows]

    async def _fetch_ticket(self, query: str, *args: Any) -> Ticket | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(query, *args)
        if row is None:
            return None
        return self._row_to_ticket(row)

    @staticmethod
    def _row_to_ticket(row: Any) -> Ticket:
        return Ticket(
            id=_to_uuid(row["id"]),
            order_id=str(row["order_id"]),
            type=TicketType(str(row["type"])),
            state=TicketState(str(row["state"])),
            last_message=row["last_message"],
            assigned_seller_id=row["assigned_seller_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            timeout_checked_at=row["timeout_checked_at"],
            last_reminder_at=row["last_reminder_at"],
            escalated_at=row["escalated_at"],
        )

    @staticmethod
    def _row_to_message(row: Any) -> TicketMessage:
        return TicketMessage(
            id=_to_uuid(row["id"]),
            ticket_id=_to_uuid(row["ticket_id"]),
            sender=MessageSender(str(row["sender"])),
            body=str(row["body"]),
            channel=MessageChannel(str(row["channel"])),
            created_at=row["created_at"],
        )


def _to_uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    return UUID(str(value))
