"""
Admin commands: book or unbook on behalf of a user, and status reports.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from serverbook.api.deps import get_admin_service, get_booking_service
from serverbook.api.routes.bookings import outcome_response
from serverbook.db.session import get_db
from serverbook.schemas.booking import AdminBookingCreate, BookingActionResponse, BookingOptions, StatusResponse
from serverbook.services.booking_admin_service import BookingAdminService
from serverbook.services.booking_service import BookingService

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/bookings", response_model=BookingActionResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_booking(
    booking_data: AdminBookingCreate,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
    admin: BookingAdminService = Depends(get_admin_service),
):
    options = BookingOptions(
        booking_for=booking_data.booking_for,
        booking_by=booking_data.member,
        region=service.catalog.parse_region(booking_data.region) or booking_data.region,
        tier=booking_data.tier,
        variant=booking_data.variant or service.catalog.default_variant,
    )
    await admin.validate_admin_book_request(db, options)
    outcome = await service.create_booking_request(db, options)
    return outcome_response(outcome)


@router.delete("/bookings/users/{user_id}", response_model=BookingActionResponse)
async def admin_destroy_booking(
    user_id: str,
    user_display: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """Unbook a user's booking. Bookings that are still starting are refused."""
    outcome = await service.destroy_user_booking(
        db, user_id, for_someone_else=True, user_display=user_display
    )
    return outcome_response(outcome)


@router.get("/status", response_model=StatusResponse)
async def admin_status(
    region: Optional[str] = None,
    user: Optional[str] = None,
    booking: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
    admin: BookingAdminService = Depends(get_admin_service),
):
    """Global status, or the report for one booking, user or region."""
    if booking is not None:
        text = await admin.get_booking_status(await service.get_by_id(db, booking))
    elif user:
        text = await admin.get_user_status(db, user)
    elif region:
        text = await admin.get_region_status(db, region)
    else:
        text = await admin.get_status(db)
    return StatusResponse(text=text)
