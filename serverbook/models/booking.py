"""
Booking model: one user's claim on a provisioned game server.

Key design decisions:
- Records are never deleted; terminal statuses keep them as history
- One-active-booking-per-user is enforced by the lifecycle engine, not by a constraint
- `messages` keeps references to the start/close status messages so they can be edited in place
"""

from sqlalchemy import Column, Integer, String, JSON, Index, CheckConstraint

from serverbook.db.base import Base, TimestampMixin, UTCDateTime
from serverbook.models.status import BookingStatus
from serverbook.schemas.message import MessageRef


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    reserved_at = Column(UTCDateTime, nullable=True)
    booking_for = Column(String(32), nullable=False, index=True)
    booking_by = Column(String(32), nullable=False)
    region = Column(String(64), nullable=False)
    tier = Column(String(64), nullable=False)
    variant = Column(String(64), nullable=False)
    server = Column(String(64), nullable=True, index=True)
    status = Column(String(16), nullable=False, default=BookingStatus.STARTING.value, index=True)
    messages = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        # Capacity checks count active bookings per region and tier
        Index("ix_bookings_region_tier", "region", "tier"),
        CheckConstraint(
            "status IN ('RESERVED', 'RESERVING', 'STARTING', 'RUNNING', 'CLOSING', 'CLOSED', 'FAILED')",
            name="check_booking_status",
        ),
    )

    def message_ref(self, kind: str):
        """Stored reference for the ``start`` or ``close`` message, if any."""
        data = (self.messages or {}).get(kind)
        if not data or not data.get("id"):
            return None
        return MessageRef(**data)

    def set_message_ref(self, kind: str, ref: MessageRef) -> None:
        # Reassign so the JSON column is flagged dirty
        self.messages = {**(self.messages or {}), kind: ref.model_dump()}

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, for={self.booking_for}, region={self.region}, tier={self.tier}, status={self.status})>"
