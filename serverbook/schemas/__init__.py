from serverbook.schemas.message import Member, MessageRef, Severity
from serverbook.schemas.booking import (
    BookingOptions, BookingCreate, AdminBookingCreate, BookingResponse,
    BookingActionResponse, StatusResponse, RconRequest, RconResponse, PreferenceUpdate,
)
from serverbook.schemas.server import ServerRecord, ServerRequest, ServerStatus, ServerFile

__all__ = [
    "Member", "MessageRef", "Severity",
    "BookingOptions", "BookingCreate", "AdminBookingCreate", "BookingResponse",
    "BookingActionResponse", "StatusResponse", "RconRequest", "RconResponse", "PreferenceUpdate",
    "ServerRecord", "ServerRequest", "ServerStatus", "ServerFile",
]
