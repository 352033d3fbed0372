from __future__ import annotations

from enum import Enum


class TicketState(str, Enum):
    """Lifecycle states of a support ticket."""

    OPEN = "open"
    WAITING_SELLER = "waiting_seller"
    ANSWERED = "answered"
    CLOSED = "closed"


class TicketType(str, Enum):
    """Inquiry kinds a ticket can track; part of the dedup key."""

    ORDER_ETA = "order_eta"
    ORDER_CANCEL = "order_cancel"
    RETURN_POLICY = "return_policy"


class MessageSender(str, Enum):
    CUSTOMER = "customer"
    BOT = "bot"
    SELLER = "seller"


class MessageChannel(str, Enum):
    WHATSAPP = "whatsapp"
    WEB = "web"
    EMAIL = "email"
    SYSTEM = "system"


# States the dedup lookup considers "still in flight".
ACTIVE_STATES: frozenset[TicketState] = frozenset({TicketState.OPEN, TicketState.WAITING_SELLER})


class TicketStateMachine:
    """Validate ticket lifecycle transitions.

    ``closed`` and ``answered`` are final: nothing moves a ticket out of them,
    a follow-up inquiry opens a fresh ticket instead.
    """

    _TRANSITIONS: dict[TicketState, frozenset[TicketState]] = {
        TicketState.OPEN: frozenset({TicketState.WAITING_SELLER, TicketState.CLOSED}),
        TicketState.WAITING_SELLER: frozenset({TicketState.ANSWERED, TicketState.CLOSED}),
        TicketState.ANSWERED: frozenset(),
        TicketState.CLOSED: frozenset(),
    }

    @classmethod
    def initial_state(cls) -> TicketState:
        return TicketState.OPEN

    @classmethod
    def is_terminal(cls, state: TicketState) -> bool:
        return not cls._TRANSITIONS[state]

    @classmethod
    def can_transition(cls, current: TicketState, new: TicketState) -> bool:
        if cls.is_terminal(current):
            return False
        if current == new:
            return True
        return new in cls._TRANSITIONS[current]
