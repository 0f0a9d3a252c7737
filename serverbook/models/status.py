"""
Booking lifecycle statuses and the legal transitions between them.

    RESERVED -> RESERVING -> STARTING -> RUNNING -> CLOSING -> CLOSED

FAILED is reachable from STARTING and RUNNING when the provisioning side
reports a failure; CLOSED is reachable from RESERVED/RESERVING on cancellation
and from any live state when the server is reported gone.
"""

from enum import Enum
from typing import Dict, FrozenSet, Set

from serverbook.core.exceptions import InvalidStateTransitionError


class BookingStatus(str, Enum):
    RESERVED = "RESERVED"
    RESERVING = "RESERVING"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
    FAILED = "FAILED"


ACTIVE_STATUSES: FrozenSet[BookingStatus] = frozenset({
    BookingStatus.STARTING,
    BookingStatus.RUNNING,
    BookingStatus.CLOSING,
})

RESERVATION_STATUSES: FrozenSet[BookingStatus] = frozenset({
    BookingStatus.RESERVED,
    BookingStatus.RESERVING,
})


class BookingStateMachine:
    """
    Central lifecycle controller for booking transitions.
    Defines the legal state transitions.
    """

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.RESERVED: {
            BookingStatus.RESERVING,
            BookingStatus.CLOSED,
        },
        BookingStatus.RESERVING: {
            BookingStatus.STARTING,
            BookingStatus.CLOSED,
        },
        BookingStatus.STARTING: {
            BookingStatus.RUNNING,
            BookingStatus.CLOSING,
            BookingStatus.CLOSED,
            BookingStatus.FAILED,
        },
        BookingStatus.RUNNING: {
            BookingStatus.CLOSING,
            BookingStatus.CLOSED,
            BookingStatus.FAILED,
        },
        BookingStatus.CLOSING: {
            BookingStatus.CLOSED,
        },
        BookingStatus.CLOSED: set(),
        BookingStatus.FAILED: set(),
    }

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        return to_status in cls._ALLOWED_TRANSITIONS.get(
            BookingStatus(from_status), set()
        )

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=BookingStatus(from_status).value,
                to_state=BookingStatus(to_status).value,
            )

    @classmethod
    def is_terminal(cls, status: BookingStatus) -> bool:
        return len(cls._ALLOWED_TRANSITIONS.get(BookingStatus(status), set())) == 0


def is_active(status: BookingStatus) -> bool:
    return BookingStatus(status) in ACTIVE_STATUSES


def is_pending_reservation(status: BookingStatus) -> bool:
    return BookingStatus(status) in RESERVATION_STATUSES
