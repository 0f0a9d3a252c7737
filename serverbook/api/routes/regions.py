"""
Catalog discovery: region listing with usage, autocomplete and variants.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from serverbook.api.deps import get_booking_service
from serverbook.db.session import get_db
from serverbook.services.booking_service import BookingService

router = APIRouter(tags=["Regions"])

MAX_SUGGESTIONS = 24


@router.get("/regions")
async def list_regions(
    region: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """Regions with per-tier `in_use` counts, optionally a single region."""
    return await service.get_regions(db, region)


@router.get("/regions/search", response_model=list[dict])
async def search_regions(
    text: str = Query("", max_length=64),
    service: BookingService = Depends(get_booking_service),
):
    return service.catalog.search_regions(text)[:MAX_SUGGESTIONS]


@router.get("/regions/tags", response_model=list[str])
async def region_tags(
    text: str = Query("", max_length=64),
    service: BookingService = Depends(get_booking_service),
):
    tags = service.catalog.get_all_region_tags()
    return [tag for tag in tags if text.lower() in tag][:MAX_SUGGESTIONS]


@router.get("/variants", response_model=dict[str, str])
async def list_variants(service: BookingService = Depends(get_booking_service)):
    """Display name -> variant key."""
    return service.catalog.get_variant_list()
