from __future__ import annotations

import logging
from typing import Protocol

from support_engine.tickets import Ticket

logger = logging.getLogger("support_engine.escalations")


class EscalationNotifier(Protocol):
    async def notify(self, ticket: Ticket, message: str) -> None:
        ...


class LoggingEscalationNotifier:
    """Writes escalations to the log; a paging integration can replace it."""

    async def notify(self, ticket: Ticket, message: str) -> None:
        logger.warning("Escalated ticket %s for order %s: %s", ticket.id, ticket.order_id, message)
