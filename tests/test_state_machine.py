"""
Tests for the booking status transitions.
"""

import pytest

from serverbook.core.exceptions import InvalidStateTransitionError
from serverbook.models.status import (
    BookingStateMachine,
    BookingStatus,
    is_active,
    is_pending_reservation,
)


@pytest.mark.parametrize(
    "from_status, to_status",
    [
        (BookingStatus.RESERVED, BookingStatus.RESERVING),
        (BookingStatus.RESERVING, BookingStatus.STARTING),
        (BookingStatus.STARTING, BookingStatus.RUNNING),
        (BookingStatus.RUNNING, BookingStatus.CLOSING),
        (BookingStatus.CLOSING, BookingStatus.CLOSED),
        (BookingStatus.STARTING, BookingStatus.FAILED),
        (BookingStatus.RUNNING, BookingStatus.FAILED),
        (BookingStatus.RESERVED, BookingStatus.CLOSED),
    ],
)
def test_allowed_transitions(from_status, to_status):
    assert BookingStateMachine.can_transition(from_status, to_status)


@pytest.mark.parametrize(
    "from_status, to_status",
    [
        (BookingStatus.CLOSED, BookingStatus.RUNNING),
        (BookingStatus.FAILED, BookingStatus.CLOSED),
        (BookingStatus.RESERVED, BookingStatus.RUNNING),
        (BookingStatus.CLOSING, BookingStatus.FAILED),
    ],
)
def test_illegal_transitions_raise(from_status, to_status):
    with pytest.raises(InvalidStateTransitionError):
        BookingStateMachine.validate_transition(from_status, to_status)


def test_terminal_states():
    assert BookingStateMachine.is_terminal(BookingStatus.CLOSED)
    assert BookingStateMachine.is_terminal(BookingStatus.FAILED)
    assert not BookingStateMachine.is_terminal(BookingStatus.CLOSING)


def test_status_groups():
    assert is_active("RUNNING")
    assert not is_active("RESERVED")
    assert is_pending_reservation("RESERVING")
    assert not is_pending_reservation("CLOSED")
