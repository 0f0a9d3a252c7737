"""
Booking lifecycle engine.

Validates booking requests, provisions servers through the gateway, drives
the booking state machine and reconciles the provisioning service's status
callbacks.

CONCURRENCY NOTES
=================

Command handlers, status callbacks and the reservation sweep are independent
async entry points. Nothing here holds a lock across them:

  - The capacity check (active bookings for region+tier < limit) is
    check-then-act. Two simultaneous requests can both pass it and exceed the
    limit by one.
  - The reservation claim (RESERVED -> RESERVING) is a conditional UPDATE, so
    a reservation is provisioned by at most one sweep.
  - Provisioning outcomes are reconciled through the status callback; an
    in-flight create/close request is never cancelled.

Operational failures inside a multi-step flow are caught locally so the
status message the user is watching can be edited to the outcome.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from serverbook import messages
from serverbook.core.access import AccessChecker, PremiumRoles
from serverbook.core.config import Settings, get_settings
from serverbook.core.exceptions import (
    MessageNotFoundError,
    NotFoundError,
    NotificationError,
    OperationalError,
    PrivateDeliveryRefusedError,
    ProviderForbiddenError,
    ProviderOverloadedError,
    ProvisioningError,
    ServerAlreadyClosedError,
    ServerCloseInProgressError,
    ValidationWarning,
)
from serverbook.core.logging import get_logger
from serverbook.core.metrics import (
    provisioning_latency,
    record_booking_attempt,
    record_callback,
    record_notification_failure,
    record_provisioning,
    record_reservation,
)
from serverbook.core.timeutils import format_relative_time, parse_relative_time, utcnow
from serverbook.models.booking import Booking
from serverbook.models.status import BookingStateMachine, BookingStatus
from serverbook.schemas.booking import BookingCreate, BookingOptions
from serverbook.schemas.message import Member, MessageRef, Severity
from serverbook.schemas.server import ServerRecord, ServerRequest, ServerStatus
from serverbook.services import booking_store, preference_service
from serverbook.services.cache_service import (
    get_cached_regions,
    invalidate_region_cache,
    set_cached_regions,
)
from serverbook.services.catalog import Catalog
from serverbook.services.interfaces import Notifier, ProvisioningGateway
from serverbook.services.preference_service import PreferenceKeys

logger = get_logger(__name__)

DEFAULT_CLOSE_MIN_PLAYERS = 2
DEFAULT_CLOSE_IDLE_TIME = 900
DEFAULT_CLOSE_WAIT_TIME = 300

RESERVATION_MIN_VALID_SECONDS = 10
RESERVATION_MAX_LEAD = timedelta(days=1)

CALLBACK_PATH = "/booking/callback"


@dataclass
class BookingOutcome:
    """Result of a lifecycle operation as shown to the requesting user."""

    booking: Optional[Booking]
    severity: Severity
    message: str

    @property
    def ok(self) -> bool:
        return self.severity in (Severity.SUCCESS, Severity.INFO)


def _first_set(*values):
    for value in values:
        if value is not None:
            return value
    return None


class BookingService:
    def __init__(
        self,
        catalog: Catalog,
        gateway: ProvisioningGateway,
        notifier: Notifier,
        settings: Optional[Settings] = None,
    ):
        self.catalog = catalog
        self.gateway = gateway
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.access = AccessChecker(PremiumRoles.from_settings(self.settings))

    # Lookups

    async def get_by_id(self, db: AsyncSession, booking_id: int) -> Booking:
        booking = await booking_store.get_by_id(db, booking_id)
        if booking is None:
            logger.debug("booking_not_found", booking_id=booking_id)
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    # Command arguments

    async def resolve_book_options(self, db: AsyncSession, request: BookingCreate) -> BookingOptions:
        """
        Fill in defaults for a self-service booking request and apply the
        feature gates on the optional arguments.
        """
        member = request.member
        settings = self.settings

        if request.tier and not self.access.has_access(member, settings.ACCESS_PROVIDER_SELECTOR):
            raise ValidationWarning(messages.BOOK_PROVIDER_RESTRICTED, code="PROVIDER_RESTRICTED")
        if request.variant and not self.access.has_access(member, settings.ACCESS_VARIANT_SELECTOR):
            raise ValidationWarning(messages.BOOK_VARIANT_RESTRICTED, code="VARIANT_RESTRICTED")

        booking_for = request.booking_for or member
        if booking_for.id != member.id and not self.access.has_access(member, settings.ACCESS_MULTI_BOOK):
            raise ValidationWarning(messages.BOOK_MULTI_RESTRICTED, code="MULTI_BOOK_RESTRICTED")
        if booking_for.bot:
            raise ValidationWarning(messages.BOOK_USER_IS_BOT, code="USER_IS_BOT")

        tier = request.tier
        if not tier:
            premium = self.access.has_access(member, settings.ACCESS_PREMIUM_TIER)
            tier = settings.DEFAULT_PREMIUM_TIER if premium else settings.DEFAULT_FREE_TIER

        region = request.region or await self.get_preferred_region(db, booking_for.id)
        if not region:
            raise ValidationWarning(messages.BOOK_REGION_REQUIRED, code="REGION_REQUIRED")

        region_slug = self.catalog.parse_region(region)
        if region_slug is None:
            raise ValidationWarning(messages.REGION_UNKNOWN, code="REGION_UNKNOWN")

        variant = request.variant or self.catalog.default_variant
        if not variant:
            raise ValidationWarning(messages.BOOK_VARIANT_REQUIRED, code="VARIANT_REQUIRED")
        if self.catalog.get_variant_config(variant) is None:
            raise ValidationWarning(messages.VARIANT_UNKNOWN, code="VARIANT_UNKNOWN")

        reserve_at = request.reserve_at
        if request.reserve_in:
            reserve_at = parse_relative_time(request.reserve_in)
        if reserve_at is not None:
            if not self.access.has_access(member, settings.ACCESS_RESERVE):
                raise ValidationWarning(messages.RESERVE_RESTRICTED, code="RESERVE_RESTRICTED")
            self.validate_reservation_time(reserve_at)

        return BookingOptions(
            booking_for=booking_for,
            booking_by=member,
            region=region_slug,
            tier=tier,
            variant=variant,
            reserve_at=reserve_at,
        )

    async def get_preferred_region(self, db: AsyncSession, user_id: str) -> Optional[str]:
        """The user's saved region, else the catalog default."""
        region = await preference_service.get_data_string(db, user_id, PreferenceKeys.BOOKING_REGION)
        return region or self.catalog.default_region

    # Validation

    async def validate_book_request(self, db: AsyncSession, options: BookingOptions) -> None:
        """
        Reject the request with the first failing rule.

        The capacity check reads the store without locking; it is advisory.
        """
        user_id = options.booking_for.id

        logger.info(
            "validating_book_request",
            booking_by=options.booking_by.id,
            booking_for=user_id,
            region=options.region,
            tier=options.tier,
        )

        if await booking_store.get_active_user_bookings(db, user_id):
            raise ValidationWarning(messages.BOOKING_ALREADY_EXISTS, code="BOOKING_ALREADY_EXISTS")

        if await booking_store.get_user_reservations(db, user_id):
            raise ValidationWarning(
                messages.BOOKING_RESERVATION_ALREADY_EXISTS, code="RESERVATION_ALREADY_EXISTS"
            )

        region = self.catalog.get_region_slug(options.region)
        if region is None:
            raise ValidationWarning(messages.REGION_UNKNOWN, code="REGION_UNKNOWN")

        region_name = self.catalog.get_region_name(region)

        if not self.catalog.can_access_region(region, options.booking_by, self.access):
            raise ValidationWarning(
                messages.REGION_RESTRICTED.format(region=region_name), code="REGION_RESTRICTED"
            )

        if not self.catalog.is_tier_valid(region, options.tier):
            raise ValidationWarning(messages.TIER_UNKNOWN, code="TIER_UNKNOWN")

        if not await self.is_region_tier_available(db, region, options.tier):
            raise ValidationWarning(
                messages.BOOKING_REACHED_LIMIT.format(region=region_name), code="REACHED_LIMIT"
            )

        if options.reserve_at is not None:
            tier_config = self.catalog.get_tier_config(region, options.tier)
            if tier_config is None or not tier_config.allowReservation:
                raise ValidationWarning(messages.BOOKING_RESERVE_NOT_ALLOWED, code="RESERVE_NOT_ALLOWED")

    def validate_unbook_request(self, booking: Booking, for_someone_else: bool = False,
                                user_display: Optional[str] = None) -> None:
        if booking.status == BookingStatus.STARTING.value:
            if for_someone_else:
                raise ValidationWarning(
                    messages.ADMIN_ONGOING.format(user=user_display or booking.booking_for),
                    code="ADMIN_ONGOING",
                )
            raise ValidationWarning(messages.BOOKING_ONGOING, code="ONGOING")

    async def is_region_tier_available(self, db: AsyncSession, region: str, tier: str) -> bool:
        tier_config = self.catalog.get_tier_config(region, tier)
        if tier_config is None:
            return False
        in_use = await booking_store.count_active_region_tier_bookings(db, region, tier)
        return in_use < tier_config.limit

    def validate_reservation_time(self, reserve_at: datetime, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        lead = (reserve_at - now).total_seconds()
        min_lead = self.settings.RESERVATION_MIN_LEAD_SECONDS

        if lead < RESERVATION_MIN_VALID_SECONDS:
            raise ValidationWarning(messages.RESERVE_INVALID_TIME, code="RESERVE_INVALID_TIME")
        if lead < min_lead:
            raise ValidationWarning(messages.RESERVE_TOO_SHORT_TIME, code="RESERVE_TOO_SHORT_TIME")
        if reserve_at - now >= RESERVATION_MAX_LEAD:
            raise ValidationWarning(messages.RESERVE_TOO_LONG_TIME, code="RESERVE_TOO_LONG_TIME")

    # Creation

    async def create_booking_request(self, db: AsyncSession, options: BookingOptions) -> BookingOutcome:
        """Reserve for later when ``reserve_at`` is set, otherwise provision now."""
        region = self.catalog.get_region_slug(options.region) or options.region
        variant = options.variant or self.catalog.default_variant or ""
        user_id = options.booking_for.id

        if options.reserve_at is not None:
            booking = await booking_store.create_booking(
                db,
                booking_for=user_id,
                booking_by=options.booking_by.id,
                region=region,
                tier=options.tier,
                variant=variant,
                status=BookingStatus.RESERVED,
                reserved_at=options.reserve_at,
            )
            text = messages.BOOKING_RESERVE_CREATED.format(
                time=format_relative_time(options.reserve_at) or "1 min"
            )
            ref = await self._send(user_id, Severity.SUCCESS, text)
            if ref is not None:
                booking.set_message_ref("start", ref)
                await booking_store.save(db, booking)

            await invalidate_region_cache()
            record_booking_attempt("reserved")
            logger.info(
                "reservation_created",
                booking_id=booking.id,
                user_id=user_id,
                region=region,
                tier=options.tier,
                reserved_at=options.reserve_at.isoformat(),
            )
            return BookingOutcome(booking, Severity.SUCCESS, text)

        try:
            status_ref = await self.notifier.send(user_id, Severity.INFO, messages.BOOKING_STARTING)
        except NotificationError as e:
            record_notification_failure("send")
            record_booking_attempt("failed")
            logger.error("starting_notification_failed", user_id=user_id, error=str(e))
            raise OperationalError(messages.BOOKING_START_FAILED, code="NOTIFICATION_FAILED")

        return await self._provision(
            db,
            member=options.booking_for,
            booking_by=options.booking_by.id,
            region=region,
            tier=options.tier,
            variant=variant,
            status_ref=status_ref,
        )

    async def _provision(
        self,
        db: AsyncSession,
        *,
        member: Member,
        booking_by: str,
        region: str,
        tier: str,
        variant: str,
        status_ref: Optional[MessageRef],
        reservation: Optional[Booking] = None,
    ) -> BookingOutcome:
        """
        Try each candidate provider in order until one accepts.

        An overloaded provider falls through to the next candidate; any other
        rejection, or overload on the final candidate, ends the attempt.
        """
        candidates = self.catalog.provider_candidates(region, tier, variant)

        if not candidates:
            logger.error("no_provider_candidates", region=region, tier=tier, variant=variant)
            return await self._provision_failed(
                member.id, status_ref, messages.BOOKING_START_FAILED, reservation
            )

        for index, provider in enumerate(candidates):
            is_last = index == len(candidates) - 1
            request = await self.build_server_request(db, member, region, tier, provider, variant)

            try:
                with provisioning_latency.labels(operation="create").time():
                    server = await self.gateway.create_server(request)
            except ProviderOverloadedError:
                record_provisioning("create", "overloaded")
                logger.info(
                    "provider_overloaded",
                    provider=provider,
                    region=region,
                    tier=tier,
                    last_candidate=is_last,
                )
                if is_last:
                    return await self._provision_failed(
                        member.id, status_ref, messages.BOOKING_PROVIDER_OVERLOADED, reservation
                    )
                continue
            except ProviderForbiddenError as e:
                record_provisioning("create", "forbidden")
                logger.error("provider_forbidden", provider=provider, region=region, error=str(e))
                return await self._provision_failed(
                    member.id, status_ref, messages.BOOKING_CLIENT_FORBIDDEN, reservation
                )
            except ProvisioningError as e:
                record_provisioning("create", "error")
                logger.error(
                    "provisioning_failed",
                    provider=provider,
                    region=region,
                    tier=tier,
                    status_code=e.status_code,
                    error=str(e),
                )
                return await self._provision_failed(
                    member.id, status_ref, messages.BOOKING_START_FAILED, reservation
                )

            record_provisioning("create", "ok")
            return await self._provision_succeeded(
                db,
                member=member,
                booking_by=booking_by,
                region=region,
                tier=tier,
                variant=variant,
                provider=provider,
                server=server,
                status_ref=status_ref,
                reservation=reservation,
            )

        # Only reachable if every candidate was skipped
        return await self._provision_failed(member.id, status_ref, messages.BOOKING_START_FAILED, reservation)

    async def _provision_succeeded(
        self,
        db: AsyncSession,
        *,
        member: Member,
        booking_by: str,
        region: str,
        tier: str,
        variant: str,
        provider: str,
        server: ServerRecord,
        status_ref: Optional[MessageRef],
        reservation: Optional[Booking],
    ) -> BookingOutcome:
        if reservation is None:
            booking = await booking_store.create_booking(
                db,
                booking_for=member.id,
                booking_by=booking_by,
                region=region,
                tier=tier,
                variant=variant,
                status=BookingStatus.STARTING,
                server=server.id,
                messages={"start": status_ref.model_dump()} if status_ref else None,
            )
            record_booking_attempt("started")
        else:
            booking = reservation
            self._transition(booking, BookingStatus.STARTING)
            booking.server = server.id
            if status_ref is not None:
                booking.set_message_ref("start", status_ref)
            await booking_store.save(db, booking)
            record_reservation("started")

        await invalidate_region_cache()

        logger.info(
            "booking_created",
            booking_id=booking.id,
            user_id=member.id,
            region=region,
            tier=tier,
            provider=provider,
            server=server.id,
            from_reservation=reservation is not None,
        )
        return BookingOutcome(booking, Severity.INFO, messages.BOOKING_STARTING)

    async def _provision_failed(
        self,
        user_id: str,
        status_ref: Optional[MessageRef],
        text: str,
        reservation: Optional[Booking],
    ) -> BookingOutcome:
        await self._edit_or_send(status_ref, user_id, Severity.ERROR, text)
        if reservation is None:
            record_booking_attempt("failed")
        else:
            # Left in RESERVING until an operator closes it
            record_reservation("failed")
            logger.warning("reservation_stuck", booking_id=reservation.id, user_id=user_id)
        return BookingOutcome(reservation, Severity.ERROR, text)

    async def build_server_request(
        self,
        db: AsyncSession,
        member: Member,
        region: str,
        tier: str,
        provider: str,
        variant: Optional[str],
    ) -> ServerRequest:
        """
        Assemble the creation request: close thresholds, variant assets and the
        user's server customizations they have access to.

        Passwords: an empty preference means no password, a missing one means
        the provisioning service generates one ("*").
        """
        tier_config = self.catalog.get_tier_config(region, tier)
        variant_config = self.catalog.get_variant_config(variant)

        data = {
            "closeMinPlayers": _first_set(
                variant_config and variant_config.minPlayers,
                tier_config and tier_config.minPlayers,
                DEFAULT_CLOSE_MIN_PLAYERS,
            ),
            "closeIdleTime": _first_set(
                variant_config and variant_config.idleTime,
                tier_config and tier_config.idleTime,
                DEFAULT_CLOSE_IDLE_TIME,
            ),
            "closeWaitTime": _first_set(
                variant_config and variant_config.waitTime,
                tier_config and tier_config.waitTime,
                DEFAULT_CLOSE_WAIT_TIME,
            ),
            "sdrEnable": False,
            "password": "*",
            "rconPassword": "*",
            "servername": self.settings.DEFAULT_SERVER_HOSTNAME,
            "tvName": self.settings.DEFAULT_SERVER_TV_NAME,
            "callbackUrl": self.settings.CALLBACK_BASE_URL.rstrip("/") + CALLBACK_PATH,
        }

        if variant_config is not None:
            if variant_config.map:
                data["map"] = variant_config.map
            if variant_config.gitRepo:
                data["gitRepository"] = variant_config.gitRepo
            if variant_config.gitKey:
                data["gitDeployKey"] = variant_config.gitKey

        user_id = member.id

        if self.access.has_access(member, self.settings.ACCESS_SERVER_PASSWORD):
            value = await preference_service.get_data(db, user_id, PreferenceKeys.SERVER_PASSWORD)
            data["password"] = "" if value == "" else (value or "*")

        if self.access.has_access(member, self.settings.ACCESS_SERVER_RCON_PASSWORD):
            value = await preference_service.get_data(db, user_id, PreferenceKeys.SERVER_RCON_PASSWORD)
            data["rconPassword"] = "" if value == "" else (value or "*")

        if self.access.has_access(member, self.settings.ACCESS_SERVER_VALVE_SDR):
            value = await preference_service.get_data(db, user_id, PreferenceKeys.SERVER_TF2_VALVE_SDR)
            data["sdrEnable"] = bool(value)

        if self.access.has_access(member, self.settings.ACCESS_SERVER_HOSTNAME):
            value = await preference_service.get_data_string(db, user_id, PreferenceKeys.SERVER_HOSTNAME)
            if value:
                data["servername"] = value

        if self.access.has_access(member, self.settings.ACCESS_SERVER_TV_NAME):
            value = await preference_service.get_data_string(db, user_id, PreferenceKeys.SERVER_TV_NAME)
            if value:
                data["tvName"] = value

        for key, field in (
            (PreferenceKeys.SERVER_MAP, "map"),
            (PreferenceKeys.SERVER_GIT_REPO, "gitRepository"),
            (PreferenceKeys.SERVER_GIT_KEY, "gitDeployKey"),
        ):
            value = await preference_service.get_data_string(db, user_id, key)
            if value:
                data[field] = value

        return ServerRequest(game=self.settings.GAME, region=region, provider=provider, data=data)

    # Teardown

    async def destroy_user_booking(
        self,
        db: AsyncSession,
        user_id: str,
        for_someone_else: bool = False,
        user_display: Optional[str] = None,
    ) -> BookingOutcome:
        booking = await booking_store.get_active_user_booking(db, user_id)

        if booking is None:
            logger.debug("unbook_no_active_booking", user_id=user_id, admin=for_someone_else)
            if for_someone_else:
                raise NotFoundError(
                    messages.ADMIN_USER_HAS_NO_BOOKING.format(user=user_display or user_id),
                    code="NO_ACTIVE_BOOKING",
                )
            raise NotFoundError(messages.UNBOOK_NO_BOOKING, code="NO_ACTIVE_BOOKING")

        self.validate_unbook_request(booking, for_someone_else, user_display)
        return await self.destroy_booking(db, booking)

    async def destroy_booking(self, db: AsyncSession, booking: Booking) -> BookingOutcome:
        """
        Ask the provisioning service to tear the server down.

        On a generic failure the booking keeps its status so the user can retry.
        """
        user_id = booking.booking_for
        close_ref = await self._send(user_id, Severity.INFO, messages.BOOKING_STOPPING)

        try:
            with provisioning_latency.labels(operation="close").time():
                await self.gateway.close_server(booking.server)
        except ServerAlreadyClosedError:
            record_provisioning("close", "already_closed")
            self._transition(booking, BookingStatus.CLOSED)
            if close_ref is not None:
                booking.set_message_ref("close", close_ref)
            await booking_store.save(db, booking)
            await invalidate_region_cache()
            await self._edit_or_send(close_ref, user_id, Severity.SUCCESS, messages.BOOKING_STOP_SUCCESS)
            logger.info("booking_closed", booking_id=booking.id, server=booking.server, reason="already_closed")
            return BookingOutcome(booking, Severity.SUCCESS, messages.BOOKING_STOP_SUCCESS)
        except ServerCloseInProgressError:
            record_provisioning("close", "in_progress")
            await self._edit_or_send(close_ref, user_id, Severity.WARNING, messages.BOOKING_STOP_IN_PROGRESS)
            logger.info("booking_close_in_progress", booking_id=booking.id, server=booking.server)
            return BookingOutcome(booking, Severity.WARNING, messages.BOOKING_STOP_IN_PROGRESS)
        except ProvisioningError as e:
            record_provisioning("close", "error")
            await self._edit_or_send(close_ref, user_id, Severity.ERROR, messages.BOOKING_STOP_FAILED)
            logger.error(
                "booking_close_failed",
                booking_id=booking.id,
                server=booking.server,
                status_code=e.status_code,
                error=str(e),
            )
            return BookingOutcome(booking, Severity.ERROR, messages.BOOKING_STOP_FAILED)

        record_provisioning("close", "ok")
        self._transition(booking, BookingStatus.CLOSING)
        if close_ref is not None:
            booking.set_message_ref("close", close_ref)
        await booking_store.save(db, booking)
        await invalidate_region_cache()

        logger.info("booking_closing", booking_id=booking.id, server=booking.server)
        return BookingOutcome(booking, Severity.INFO, messages.BOOKING_STOPPING)

    async def cancel_reservation(self, db: AsyncSession, user_id: str) -> Booking:
        reservations = await booking_store.get_user_reservations(db, user_id)
        if not reservations:
            raise NotFoundError(messages.UNRESERVE_NO_RESERVATION, code="NO_RESERVATION")

        reservation = reservations[0]
        self._transition(reservation, BookingStatus.CLOSED)
        await booking_store.save(db, reservation)
        await invalidate_region_cache()

        logger.info("reservation_cancelled", booking_id=reservation.id, user_id=user_id)
        return reservation

    # Status callbacks

    async def handle_server_status_change(
        self,
        db: AsyncSession,
        server: ServerRecord,
        status: Union[ServerStatus, str],
    ) -> Booking:
        """
        Reconcile a status reported by the provisioning service.

        idle moves STARTING to RUNNING and delivers the connection details;
        closed and failed end the booking. Repeats are no-ops.
        """
        status = ServerStatus(status)
        booking = await booking_store.get_by_server(db, server.id)

        if booking is None:
            record_callback(status.value, "unmatched")
            logger.warning("status_callback_unmatched", server=server.id, status=status.value)
            raise NotFoundError(f"No booking found for server '{server.id}'", code="BOOKING_NOT_FOUND")

        current = BookingStatus(booking.status)

        if status == ServerStatus.IDLE:
            if current != BookingStatus.STARTING:
                record_callback(status.value, "ignored")
                logger.debug("status_callback_ignored", booking_id=booking.id, status=status.value,
                             booking_status=current.value)
                return booking

            self._transition(booking, BookingStatus.RUNNING)
            await booking_store.save(db, booking)
            await invalidate_region_cache()
            record_callback(status.value, "applied")
            logger.info("booking_running", booking_id=booking.id, server=server.id)

            await self._deliver_details(booking, server, booking.message_ref("start"))
            return booking

        if status in (ServerStatus.CLOSED, ServerStatus.FAILED):
            if BookingStateMachine.is_terminal(current):
                record_callback(status.value, "ignored")
                logger.debug("status_callback_ignored", booking_id=booking.id, status=status.value,
                             booking_status=current.value)
                return booking

            if status == ServerStatus.FAILED and BookingStateMachine.can_transition(current, BookingStatus.FAILED):
                target = BookingStatus.FAILED
                severity, text = Severity.ERROR, messages.BOOKING_SERVER_FAILED
            elif status == ServerStatus.FAILED:
                target = BookingStatus.CLOSED
                severity, text = Severity.ERROR, messages.BOOKING_SERVER_FAILED
            else:
                target = BookingStatus.CLOSED
                severity, text = Severity.SUCCESS, messages.BOOKING_STOP_SUCCESS

            self._transition(booking, target)
            ref = booking.message_ref("close") or booking.message_ref("start")
            new_ref = await self._edit_or_send(ref, booking.booking_for, severity, text)
            if new_ref is not None and new_ref != ref:
                booking.set_message_ref("close", new_ref)
            await booking_store.save(db, booking)
            await invalidate_region_cache()

            record_callback(status.value, "applied")
            logger.info("booking_ended", booking_id=booking.id, server=server.id,
                        status=target.value, reported=status.value)
            return booking

        record_callback(status.value, "ignored")
        logger.debug("status_callback_ignored", booking_id=booking.id, status=status.value)
        return booking

    async def _deliver_details(self, booking: Booking, server: ServerRecord,
                               status_ref: Optional[MessageRef]) -> None:
        user_id = booking.booking_for
        try:
            await self.notifier.send_private(
                user_id, Severity.SUCCESS, self.build_connect_message(booking, server)
            )
        except PrivateDeliveryRefusedError:
            record_notification_failure("private")
            logger.info("private_delivery_refused", booking_id=booking.id, user_id=user_id)
            await self._edit_or_send(status_ref, user_id, Severity.ERROR, messages.BOOKING_FAILED_TO_SEND_PRIVATE_DM)
            return
        except NotificationError as e:
            record_notification_failure("private")
            logger.error("private_delivery_failed", booking_id=booking.id, user_id=user_id, error=str(e))
            await self._edit_or_send(status_ref, user_id, Severity.ERROR, messages.BOOKING_FAILED_TO_SEND_DM)
            return

        await self._edit_or_send(status_ref, user_id, Severity.SUCCESS, messages.BOOKING_START_SUCCESS)

    async def send_booking_details(self, db: AsyncSession, user_id: str) -> Booking:
        """Re-deliver the connection details of the user's active booking."""
        booking = await booking_store.get_active_user_booking(db, user_id)
        if booking is None:
            raise NotFoundError(messages.RESEND_NO_BOOKING, code="NO_ACTIVE_BOOKING")
        if booking.status == BookingStatus.STARTING.value:
            raise ValidationWarning(messages.BOOKING_NO_DETAILS_DURING_STARTING, code="STARTING")

        try:
            server = await self.gateway.get_server_info(booking.server)
        except ProvisioningError as e:
            logger.error("server_info_failed", booking_id=booking.id, server=booking.server, error=str(e))
            raise OperationalError(messages.BOOKING_FAILED_TO_SEND_DM, code="SERVER_INFO_FAILED")

        try:
            await self.notifier.send_private(user_id, Severity.SUCCESS, self.build_connect_message(booking, server))
        except PrivateDeliveryRefusedError:
            record_notification_failure("private")
            raise ValidationWarning(messages.BOOKING_FAILED_TO_SEND_PRIVATE_DM, code="PRIVATE_REFUSED")
        except NotificationError as e:
            record_notification_failure("private")
            logger.error("private_delivery_failed", booking_id=booking.id, user_id=user_id, error=str(e))
            raise OperationalError(messages.BOOKING_FAILED_TO_SEND_DM, code="NOTIFICATION_FAILED")

        logger.info("booking_details_resent", booking_id=booking.id, user_id=user_id)
        return booking

    @staticmethod
    def build_connect_message(booking: Booking, server: ServerRecord) -> str:
        data = server.data
        sdr = bool(data.get("sdrEnable"))

        if sdr:
            connect = f"connect {data.get('sdrIp')}:{data.get('sdrPort')};"
        else:
            connect = f"connect {server.ip}:{server.port};"

        password = data.get("password")
        if password:
            connect += f' password "{password}";'

        connect_rcon = connect
        rcon_address = ""
        if sdr:
            rcon_address = f'rcon_address ""; rcon_address {server.ip}:{server.port};'
            connect_rcon += f" {rcon_address}"

        rcon_password = data.get("rconPassword")
        if rcon_password:
            connect_rcon += f' rcon_password "{rcon_password}";'

        if sdr:
            connect_tv = f"connect {data.get('sdrIp')}:{data.get('sdrTvPort')};"
        else:
            connect_tv = f"connect {server.ip}:{_first_set(data.get('tvPort'), server.tvPort)};"

        tv_password = data.get("tvPassword")
        if tv_password:
            connect_tv += f' password "{tv_password}";'

        lines = [
            "Your server is ready",
            f"Region: {server.region or booking.region}",
            f"Variant: {booking.variant}",
            "",
            "Connect String with RCON",
            connect_rcon,
            "",
            "Connect String",
            connect,
            "",
            "SourceTV Details",
            connect_tv,
        ]

        if sdr:
            lines += [
                "",
                "If you are unable to execute RCON commands in the server then use the following commands.",
                rcon_address,
                "",
                f"Original IP (do not share this unless you have connection issues): {server.ip}:{server.port}",
            ]

        return "\n".join(lines)

    # Reservations

    async def process_due_reservations(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Start every RESERVED booking whose start window has opened. Returns how many were claimed."""
        now = now or utcnow()
        processed = 0

        for booking in await booking_store.get_reserved_bookings(db):
            if booking.reserved_at is None:
                continue

            tier_config = self.catalog.get_tier_config(booking.region, booking.tier)
            early_start = tier_config.earlyStart if tier_config else 0
            due_at = booking.reserved_at - timedelta(seconds=early_start)

            if now < due_at:
                continue

            try:
                if await self.process_reservation(db, booking):
                    processed += 1
            except Exception as e:
                record_reservation("failed")
                logger.error(
                    "reservation_processing_failed",
                    booking_id=booking.id,
                    user_id=booking.booking_for,
                    error=str(e),
                    exc_info=True,
                )

        return processed

    async def process_reservation(self, db: AsyncSession, booking: Booking) -> bool:
        """
        Claim one reservation and run it through provisioning.

        A failed provisioning attempt leaves the booking in RESERVING. A
        reservation whose member already holds an active booking is closed
        without provisioning.
        """
        if not await booking_store.claim_reservation(db, booking):
            record_reservation("skipped")
            return False

        if await booking_store.get_active_user_bookings(db, booking.booking_for):
            self._transition(booking, BookingStatus.CLOSED)
            await booking_store.save(db, booking)
            record_reservation("skipped")
            logger.warning("reservation_skipped_active_booking", booking_id=booking.id, user_id=booking.booking_for)
            await self._send(booking.booking_for, Severity.WARNING, messages.BOOKING_RESERVATION_SKIPPED_ACTIVE)
            return True

        await invalidate_region_cache()
        logger.info(
            "reservation_processing",
            booking_id=booking.id,
            user_id=booking.booking_for,
            region=booking.region,
            tier=booking.tier,
        )

        member = await self._fetch_member(booking.booking_for)
        status_ref = await self._send(booking.booking_for, Severity.INFO, messages.BOOKING_STARTING)

        await self._provision(
            db,
            member=member,
            booking_by=booking.booking_by,
            region=booking.region,
            tier=booking.tier,
            variant=booking.variant,
            status_ref=status_ref,
            reservation=booking,
        )
        return True

    async def _fetch_member(self, user_id: str) -> Member:
        try:
            member = await self.notifier.fetch_member(user_id)
        except NotificationError as e:
            logger.warning("member_lookup_failed", user_id=user_id, error=str(e))
            member = None
        return member or Member(id=user_id)

    # Region listing

    async def get_regions(self, db: AsyncSession, region: Optional[str] = None) -> dict:
        """Regions with each tier's live ``in_use`` count."""
        key = self.catalog.get_region_slug(region) or region if region else None

        cached = await get_cached_regions(key)
        if cached is not None:
            return cached

        keys = [key] if key else list(self.catalog.regions)
        active = await booking_store.get_active_bookings(db)

        output: dict = {}
        for slug in keys:
            config = self.catalog.regions.get(slug)
            if config is None:
                continue

            region_bookings = [booking for booking in active if booking.region == slug]
            tiers = {}
            for tier_key, tier in config.tiers.items():
                tiers[tier_key] = {
                    **tier.model_dump(),
                    "in_use": sum(1 for booking in region_bookings if booking.tier == tier_key),
                }
            output[slug] = {**config.model_dump(exclude={"tiers"}), "tiers": tiers}

        if not output:
            raise NotFoundError(messages.REGION_NOT_FOUND.format(region=region), code="REGION_NOT_FOUND")

        await set_cached_regions(key, output)
        return output

    async def get_status_summary(
        self,
        db: AsyncSession,
        user_id: str,
        continent: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> str:
        lines = []

        active_booking = await booking_store.get_active_user_booking(db, user_id)
        if active_booking is not None:
            lines.append(
                f"You currently have an active booking at {self.catalog.get_region_name(active_booking.region)}"
            )

        reservations = await booking_store.get_user_reservations(db, user_id)
        if reservations and reservations[0].reserved_at is not None:
            reservation = reservations[0]
            when = format_relative_time(reservation.reserved_at) or "1 min"
            lines.append(
                f"You currently have a scheduled reservation at "
                f"{self.catalog.get_region_name(reservation.region)} in {when}"
            )

        bookings = await booking_store.get_active_bookings(db)
        if bookings:
            lines.append(f"Active: {len(bookings)}")

        keys = self.catalog.filter_regions(continent=continent, tag=tag)
        if not keys:
            lines.append("No region found. Could not find any region with that tag. Please try something else.")
            return "\n".join(lines)

        for key in keys:
            region = self.catalog.regions[key]
            if region.hidden:
                continue

            aliases = " ".join(f"`{alias}`" for alias in [key, *region.alias])
            lines.append("")
            lines.append(f"{region.name} {aliases}")

            for tier_key in sorted(region.tiers):
                tier = region.tiers[tier_key]
                if not tier.enabled:
                    continue
                used = sum(1 for b in bookings if b.region == key and b.tier == tier_key)
                line = f"{tier_key}: {used} / {tier.limit}"
                if tier.allowReservation:
                    line += " [R]"
                lines.append(line)

        lines.append("")
        lines.append("[R]: Reservation Allowed")
        return "\n".join(lines)

    # Helpers

    @staticmethod
    def _transition(booking: Booking, to_status: BookingStatus) -> None:
        BookingStateMachine.validate_transition(BookingStatus(booking.status), to_status)
        booking.status = to_status.value

    async def _send(self, user_id: str, severity: Severity, text: str) -> Optional[MessageRef]:
        try:
            return await self.notifier.send(user_id, severity, text)
        except NotificationError as e:
            record_notification_failure("send")
            logger.error("notification_send_failed", user_id=user_id, error=str(e))
            return None

    async def _edit_or_send(
        self,
        ref: Optional[MessageRef],
        user_id: str,
        severity: Severity,
        text: str,
    ) -> Optional[MessageRef]:
        """Edit the referenced message, posting a fresh one if it is gone."""
        if ref is not None:
            try:
                return await self.notifier.edit(ref, severity, text)
            except MessageNotFoundError:
                logger.debug("status_message_missing", channel=ref.channel, message=ref.id)
            except NotificationError as e:
                record_notification_failure("edit")
                logger.error("notification_edit_failed", user_id=user_id, error=str(e))
                return None

        return await self._send(user_id, severity, text)
