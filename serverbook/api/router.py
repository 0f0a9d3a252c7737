"""
Central API router that aggregates the command route modules.
"""

from fastapi import APIRouter, Depends

from serverbook.api.deps import verify_service_token
from serverbook.api.routes import admin, bookings, preferences, regions, servers

api_router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_service_token)])
api_router.include_router(bookings.router)
api_router.include_router(admin.router)
api_router.include_router(regions.router)
api_router.include_router(preferences.router)
api_router.include_router(servers.router)
