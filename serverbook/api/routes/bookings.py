"""
Self-service booking commands: book, unbook, resend, unreserve and status.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from serverbook import messages
from serverbook.api.deps import get_booking_service
from serverbook.core.exceptions import OperationalError
from serverbook.core.logging import get_logger
from serverbook.db.session import get_db
from serverbook.schemas.booking import (
    BookingActionResponse,
    BookingCreate,
    BookingResponse,
    StatusResponse,
)
from serverbook.schemas.message import Severity
from serverbook.services.booking_service import BookingOutcome, BookingService

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


def outcome_response(outcome: BookingOutcome) -> BookingActionResponse:
    """Errors become a 502; warnings and successes are returned as-is."""
    if outcome.severity == Severity.ERROR:
        raise OperationalError(outcome.message)
    return BookingActionResponse(
        message=outcome.message,
        severity=outcome.severity,
        booking=BookingResponse.model_validate(outcome.booking) if outcome.booking else None,
    )


@router.post("", response_model=BookingActionResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """
    Book a server now, or reserve one when `reserve_at` / `reserve_in` is given.

    The status message the user sees is posted and edited by the engine; the
    response mirrors its final text.
    """
    options = await service.resolve_book_options(db, booking_data)
    await service.validate_book_request(db, options)
    outcome = await service.create_booking_request(db, options)
    return outcome_response(outcome)


@router.get("/status", response_model=StatusResponse)
async def booking_status(
    user_id: str,
    continent: Optional[str] = None,
    tag: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """Availability per region, plus the user's own booking or reservation."""
    text = await service.get_status_summary(db, user_id, continent=continent, tag=tag)
    return StatusResponse(text=text)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_by_id(db, booking_id)


@router.delete("/users/{user_id}", response_model=BookingActionResponse)
async def destroy_booking(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """Unbook the user's active booking."""
    outcome = await service.destroy_user_booking(db, user_id)
    return outcome_response(outcome)


@router.post("/users/{user_id}/resend", response_model=BookingActionResponse)
async def resend_booking_details(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.send_booking_details(db, user_id)
    return BookingActionResponse(
        message=messages.BOOKING_START_SUCCESS,
        severity=Severity.SUCCESS,
        booking=BookingResponse.model_validate(booking),
    )


@router.delete("/users/{user_id}/reservation", response_model=BookingActionResponse)
async def cancel_reservation(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.cancel_reservation(db, user_id)
    return BookingActionResponse(
        message=messages.UNRESERVE_CANCELLED,
        severity=Severity.SUCCESS,
        booking=BookingResponse.model_validate(booking),
    )


@router.get("/users/{user_id}/tiers/search", response_model=list[dict])
async def search_tiers(
    user_id: str,
    text: str = Query("", max_length=64),
    region: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """Tier suggestions for the user's chosen, preferred or default region."""
    region = region or await service.get_preferred_region(db, user_id)
    if not region:
        return [{"name": "Please select a region first", "value": "invalid"}]
    return service.catalog.search_tiers(region, text.lower())[:24]
