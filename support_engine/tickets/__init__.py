"""Support tickets: lifecycle, persistence and transcripts."""

from .models import Ticket, TicketMessage
from .repository import TicketRepository
from .service import (
    InvalidTicketTransitionError,
    TicketNotFoundError,
    TicketService,
    TicketServiceError,
)
from .state import (
    ACTIVE_STATES,
    MessageChannel,
    MessageSender,
    TicketState,
    TicketStateMachine,
    TicketType,
)

__all__ = [
    "ACTIVE_STATES",
    "InvalidTicketTransitionError",
    "MessageChannel",
    "MessageSender",
    "Ticket",
    "TicketMessage",
    "TicketNotFoundError",
    "TicketRepository",
    "TicketService",
    "TicketServiceError",
    "TicketState",
    "TicketStateMachine",
    "TicketType",
]
