"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from serverbook.schemas.message import Member, Severity


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive reservation times are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BookingOptions(BaseModel):
    """A validated booking request as handed to the lifecycle engine."""

    booking_for: Member
    booking_by: Member
    region: str
    tier: str
    variant: Optional[str] = None
    reserve_at: Optional[datetime] = None

    @field_validator("reserve_at")
    @classmethod
    def reserve_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class BookingCreate(BaseModel):
    """
    Book or reserve a server.

    `booking_for` defaults to the requesting member. `region` defaults to the
    member's preferred region, then the catalog default. `reserve_in` takes a
    relative offset such as "1h30m"; `reserve_at` an absolute time.
    """

    member: Member
    booking_for: Optional[Member] = None
    region: Optional[str] = None
    tier: Optional[str] = None
    variant: Optional[str] = None
    reserve_at: Optional[datetime] = None
    reserve_in: Optional[str] = Field(None, max_length=16)

    @field_validator("reserve_at")
    @classmethod
    def reserve_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class AdminBookingCreate(BaseModel):
    member: Member
    booking_for: Member
    region: str
    tier: str = "free"
    variant: Optional[str] = None


class BookingResponse(BaseModel):
    id: int
    booking_for: str
    booking_by: str
    region: str
    tier: str
    variant: str
    server: Optional[str]
    status: str
    reserved_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingActionResponse(BaseModel):
    message: str
    severity: Severity = Severity.INFO
    booking: Optional[BookingResponse] = None


class StatusResponse(BaseModel):
    text: str


class RconRequest(BaseModel):
    command: Optional[str] = Field(None, max_length=512)


class RconResponse(BaseModel):
    response: str


class PreferenceUpdate(BaseModel):
    member: Member
    value: Optional[str | bool] = None
