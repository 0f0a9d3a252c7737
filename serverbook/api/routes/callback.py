"""
Status callback invoked by the provisioning service.

Not behind the service token: the provisioning service is the caller.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from serverbook.api.deps import get_booking_service
from serverbook.db.session import get_db
from serverbook.schemas.server import ServerRecord, ServerStatus
from serverbook.services.booking_service import BookingService

router = APIRouter(prefix="/booking", tags=["Callback"])


@router.post("/callback")
async def server_status_callback(
    server: ServerRecord,
    status: ServerStatus,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """Apply a reported server status to its booking; 404 when no booking owns the server."""
    booking = await service.handle_server_status_change(db, server, status)
    return {"booking_id": booking.id, "status": booking.status}
