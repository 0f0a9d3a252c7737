"""
Domain exceptions for the booking service.

Every exception carries a user-facing message and a severity so the command
boundary can render it as-is. Provisioning and notification failures have their
own narrower types because the lifecycle engine branches on them.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

from serverbook.schemas.message import Severity


class BookingException(Exception):
    """Base exception for all booking-level errors."""

    severity = Severity.ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "severity": self.severity.value,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationWarning(BookingException):
    """User-correctable rejection (already booked, restricted region, limit reached)."""

    severity = Severity.WARNING
    status_code = status.HTTP_409_CONFLICT


class OperationalError(BookingException):
    """Provisioning or delivery failure, surfaced with a generic message."""

    status_code = status.HTTP_502_BAD_GATEWAY


class NotFoundError(BookingException):
    """Unknown booking, server or region."""

    severity = Severity.WARNING
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateTransitionError(BookingException):
    """
    Raised when an illegal booking state transition is attempted.
    """

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


# Provisioning gateway failures


class ProvisioningError(Exception):
    """Generic provisioning failure (includes timeouts and connection errors)."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ProviderOverloadedError(ProvisioningError):
    """Provider has no capacity left (429)."""


class ProviderForbiddenError(ProvisioningError):
    """Client is not allowed to use the provider (403)."""


class ServerAlreadyClosedError(ProvisioningError):
    """Server is already gone (450)."""


class ServerCloseInProgressError(ProvisioningError):
    """Server teardown was already triggered elsewhere (451)."""


# Notification sink failures


class NotificationError(Exception):
    """Message could not be delivered or edited."""


class MessageNotFoundError(NotificationError):
    """Referenced channel or message no longer exists."""


class PrivateDeliveryRefusedError(NotificationError):
    """User does not accept private messages."""
