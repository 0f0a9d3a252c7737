"""
User settings that customize booked servers.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from serverbook.api.deps import get_booking_service
from serverbook.db.session import get_db
from serverbook.schemas.booking import PreferenceUpdate, StatusResponse
from serverbook.services import preference_service
from serverbook.services.booking_service import BookingService

router = APIRouter(prefix="/preferences", tags=["Preferences"])


@router.put("/{user_id}/{setting}", response_model=StatusResponse)
async def update_setting(
    user_id: str,
    setting: str,
    update: PreferenceUpdate,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    if update.member.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Settings can only be changed by their owner",
        )

    text = await preference_service.update_user_setting(
        db,
        update.member,
        setting,
        update.value,
        catalog=service.catalog,
        access=service.access,
        settings=service.settings,
    )
    return StatusResponse(text=text)
