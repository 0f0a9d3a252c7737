"""
Admin-side booking operations: booking on behalf of users and status reports.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from serverbook import messages
from serverbook.core.exceptions import NotFoundError, ProvisioningError, ValidationWarning
from serverbook.core.logging import get_logger
from serverbook.models.booking import Booking
from serverbook.models.status import BookingStatus
from serverbook.schemas.booking import BookingOptions
from serverbook.schemas.server import ServerRecord
from serverbook.services import booking_store
from serverbook.services.booking_service import BookingService

logger = get_logger(__name__)

RECENT_BOOKINGS_LIMIT = 10


def _timestamp(value) -> str:
    return value.strftime("%a, %d %b %Y %H:%M:%S GMT") if value else "-"


class BookingAdminService:
    def __init__(self, booking_service: BookingService):
        self.booking_service = booking_service
        self.catalog = booking_service.catalog
        self.gateway = booking_service.gateway

    async def validate_admin_book_request(self, db: AsyncSession, options: BookingOptions) -> None:
        """
        Admin bookings skip reservation and restriction rules but still respect
        the one-booking-per-member rule, pending reservations included, and tier
        limits.
        """
        user = options.booking_for

        logger.info(
            "validating_admin_book_request",
            booking_by=options.booking_by.id,
            booking_for=user.id,
            region=options.region,
            tier=options.tier,
        )

        if await booking_store.get_active_user_bookings(db, user.id):
            raise ValidationWarning(
                messages.ADMIN_ALREADY_EXISTS.format(user=user.display), code="ADMIN_ALREADY_EXISTS"
            )

        if await booking_store.get_user_reservations(db, user.id):
            raise ValidationWarning(
                messages.ADMIN_RESERVATION_ALREADY_EXISTS.format(user=user.display),
                code="ADMIN_RESERVATION_ALREADY_EXISTS",
            )

        region = self.catalog.get_region_slug(options.region)
        if region is None:
            raise ValidationWarning(messages.REGION_UNKNOWN, code="REGION_UNKNOWN")

        if not self.catalog.is_tier_valid(region, options.tier):
            raise ValidationWarning(messages.TIER_UNKNOWN, code="TIER_UNKNOWN")

        if not await self.booking_service.is_region_tier_available(db, region, options.tier):
            raise ValidationWarning(
                messages.BOOKING_REACHED_LIMIT.format(region=self.catalog.get_region_name(region)),
                code="REACHED_LIMIT",
            )

    # Reports

    async def get_status(self, db: AsyncSession) -> str:
        bookings = await booking_store.get_active_bookings(db)
        if not bookings:
            return messages.ADMIN_NO_ACTIVE_BOOKINGS

        lines = [f"Active: {len(bookings)}"]
        lines += [f"{b.id} ({b.booking_for}) [{b.region}, {b.tier}]" for b in bookings]
        return "\n".join(lines)

    async def get_user_status(self, db: AsyncSession, user_id: str, user_display: Optional[str] = None) -> str:
        display = user_display or user_id
        total = await booking_store.count_user_bookings(db, user_id)
        if total == 0:
            return messages.ADMIN_USER_NO_BOOKINGS.format(user=display)

        active = await booking_store.get_active_user_bookings(db, user_id)
        if len(active) == 1:
            return f"Total Bookings: {total}\n" + await self.get_booking_status(active[0])

        lines = [f"Total Bookings: {total}"]
        if not active:
            lines.append(messages.ADMIN_USER_NO_ACTIVE_BOOKINGS.format(user=display))
            for booking in await booking_store.get_user_bookings(db, user_id, limit=RECENT_BOOKINGS_LIMIT):
                when = booking.reserved_at if booking.status == BookingStatus.RESERVED.value else booking.created_at
                lines.append(f"{booking.id} [{booking.region}, {booking.tier}, {_timestamp(when)}]")
        else:
            lines += [f"{b.id} [{b.region}, {b.tier}]" for b in active]
        return "\n".join(lines)

    async def get_region_status(self, db: AsyncSession, region: str) -> str:
        slug = self.catalog.get_region_slug(region)
        if slug is None:
            raise NotFoundError(messages.REGION_NOT_FOUND.format(region=region), code="REGION_NOT_FOUND")
        name = self.catalog.get_region_name(slug)

        total = await booking_store.count_region_bookings(db, slug)
        if total == 0:
            return messages.ADMIN_REGION_NO_BOOKINGS.format(region=name)

        active = await booking_store.get_active_region_bookings(db, slug)
        if len(active) == 1:
            return f"Total Bookings: {total}\n" + await self.get_booking_status(active[0])

        lines = [f"Total Bookings: {total}"]
        if not active:
            lines.append(messages.ADMIN_REGION_NO_ACTIVE_BOOKINGS.format(region=name))
            for booking in await booking_store.get_region_bookings(db, slug, limit=RECENT_BOOKINGS_LIMIT):
                lines.append(f"{booking.id} [{booking.tier}, {_timestamp(booking.created_at)}]")
        else:
            lines += [f"{b.id} [{b.region}, {b.tier}]" for b in active]
        return "\n".join(lines)

    async def get_booking_status(self, booking: Booking) -> str:
        """Booking details, plus live server state when the booking has a server."""
        server: Optional[ServerRecord] = None
        if booking.server:
            try:
                server = await self.gateway.get_server_info(booking.server)
            except ProvisioningError as e:
                logger.warning("server_info_failed", booking_id=booking.id, server=booking.server, error=str(e))

        running = server is not None and server.is_running

        lines = [f"Booking ID:  {booking.id}"]
        if booking.server:
            lines.append(f"Server ID:   {booking.server}")
        lines.append(f"User ID:     {booking.booking_for}")
        lines.append(f"Created At:  {_timestamp(booking.created_at)}")
        if booking.reserved_at:
            lines.append(f"Reserved At: {_timestamp(booking.reserved_at)}")
        lines.append(f"Region:      {booking.region}")

        if running:
            tv_port = server.data.get("tvPort") or server.tvPort
            lines.append(f"IP:          {server.ip}:{server.port} ({tv_port})")
            lines.append(f"Password:    {server.password}")
            lines.append(f"RCON:        {server.rconPassword}")

        if server is not None:
            lines.append(f"S. Server:   {server.status}")
        lines.append(f"S. Booking:  {booking.status}")

        if running:
            lines.append("")
            lines.append(
                f"connect {server.ip}:{server.port}; password {server.password}; "
                f"rcon_password {server.rconPassword}"
            )

        return "\n".join(lines)
