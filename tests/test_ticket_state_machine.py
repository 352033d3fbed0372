import pytest

from support_engine.tickets import TicketState, TicketStateMachine


def test_initial_state_is_open():
    assert TicketStateMachine.initial_state() == TicketState.OPEN


@pytest.mark.parametrize(
    ("current", "new"),
    [
        (TicketState.OPEN, TicketState.WAITING_SELLER),
        (TicketState.OPEN, TicketState.CLOSED),
        (TicketState.WAITING_SELLER, TicketState.ANSWERED),
        (TicketState.WAITING_SELLER, TicketState.CLOSED),
    ],
)
def test_forward_transitions_allowed(current, new):
    assert TicketStateMachine.can_transition(current, new)


@pytest.mark.parametrize(
    ("current", "new"),
    [
        (TicketState.WAITING_SELLER, TicketState.OPEN),
        (TicketState.OPEN, TicketState.ANSWERED),
        (TicketState.ANSWERED, TicketState.WAITING_SELLER),
        (TicketState.ANSWERED, TicketState.CLOSED),
        (TicketState.CLOSED, TicketState.OPEN),
        (TicketState.CLOSED, TicketState.CLOSED),
    ],
)
def test_backward_and_terminal_transitions_rejected(current, new):
    assert not TicketStateMachine.can_transition(current, new)


def test_terminal_states():
    assert TicketStateMachine.is_terminal(TicketState.CLOSED)
    assert TicketStateMachine.is_terminal(TicketState.ANSWERED)
    assert not TicketStateMachine.is_terminal(TicketState.OPEN)
    assert not TicketStateMachine.is_terminal(TicketState.WAITING_SELLER)
