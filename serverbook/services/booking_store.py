"""
Booking record store: persistence and queries for booking records.

Records are never deleted. Uniqueness rules (one active booking and one pending
reservation per user) are enforced by the lifecycle engine before writes.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from serverbook.core.logging import get_logger
from serverbook.models.booking import Booking
from serverbook.models.status import ACTIVE_STATUSES, RESERVATION_STATUSES, BookingStatus

logger = get_logger(__name__)

_ACTIVE = [status.value for status in ACTIVE_STATUSES]
_RESERVATION = [status.value for status in RESERVATION_STATUSES]


async def create_booking(
    db: AsyncSession,
    *,
    booking_for: str,
    booking_by: str,
    region: str,
    tier: str,
    variant: str,
    status: BookingStatus,
    server: Optional[str] = None,
    reserved_at: Optional[datetime] = None,
    messages: Optional[dict] = None,
) -> Booking:
    booking = Booking(
        booking_for=booking_for,
        booking_by=booking_by,
        region=region,
        tier=tier,
        variant=variant,
        status=status.value,
        server=server,
        reserved_at=reserved_at,
        messages=messages or {},
    )
    db.add(booking)
    await db.commit()
    await db.refresh(booking)
    return booking


async def save(db: AsyncSession, booking: Booking) -> Booking:
    await db.commit()
    await db.refresh(booking)
    return booking


async def get_by_id(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    return result.scalar_one_or_none()


async def get_by_server(db: AsyncSession, server_id: str) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.server == server_id)
        .order_by(Booking.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_active_bookings(db: AsyncSession) -> list[Booking]:
    result = await db.execute(
        select(Booking).where(Booking.status.in_(_ACTIVE)).order_by(Booking.id)
    )
    return list(result.scalars().all())


async def get_active_user_bookings(db: AsyncSession, user_id: str) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.booking_for == user_id, Booking.status.in_(_ACTIVE))
        .order_by(Booking.id)
    )
    return list(result.scalars().all())


async def get_active_user_booking(db: AsyncSession, user_id: str) -> Optional[Booking]:
    bookings = await get_active_user_bookings(db, user_id)
    return bookings[0] if bookings else None


async def get_user_reservations(db: AsyncSession, user_id: str) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.booking_for == user_id, Booking.status.in_(_RESERVATION))
        .order_by(Booking.id)
    )
    return list(result.scalars().all())


async def get_active_region_bookings(db: AsyncSession, region: str) -> list[Booking]:
    result = await db.execute(
        select(Booking).where(Booking.region == region, Booking.status.in_(_ACTIVE))
    )
    return list(result.scalars().all())


async def count_active_region_tier_bookings(db: AsyncSession, region: str, tier: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Booking)
        .where(
            Booking.region == region,
            Booking.tier == tier,
            Booking.status.in_(_ACTIVE),
        )
    )
    return result.scalar() or 0


async def get_reserved_bookings(db: AsyncSession) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.status == BookingStatus.RESERVED.value)
        .order_by(Booking.reserved_at.asc())
    )
    return list(result.scalars().all())


async def get_user_bookings(db: AsyncSession, user_id: str, limit: Optional[int] = None) -> list[Booking]:
    """All bookings for a user, newest first."""
    query = (
        select(Booking)
        .where(Booking.booking_for == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    if limit:
        query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_region_bookings(db: AsyncSession, region: str, limit: Optional[int] = None) -> list[Booking]:
    """All bookings in a region, newest first."""
    query = (
        select(Booking)
        .where(Booking.region == region)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    if limit:
        query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def count_user_bookings(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(Booking).where(Booking.booking_for == user_id)
    )
    return result.scalar() or 0


async def count_region_bookings(db: AsyncSession, region: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(Booking).where(Booking.region == region)
    )
    return result.scalar() or 0


async def claim_reservation(db: AsyncSession, booking: Booking) -> bool:
    """
    Flip RESERVED -> RESERVING only if the record is still RESERVED.

    Returns False when another sweep got there first.
    """
    result = await db.execute(
        update(Booking)
        .where(
            Booking.id == booking.id,
            Booking.status == BookingStatus.RESERVED.value,
        )
        .values(status=BookingStatus.RESERVING.value)
    )
    await db.commit()

    if result.rowcount == 0:
        logger.info("reservation_claim_lost", booking_id=booking.id)
        return False

    await db.refresh(booking)
    return True
