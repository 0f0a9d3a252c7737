"""
Shared route dependencies: service-token authentication and access to the
services built by the application lifespan.
"""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from serverbook.core.config import get_settings
from serverbook.services.booking_admin_service import BookingAdminService
from serverbook.services.booking_service import BookingService
from serverbook.services.server_tools import ServerTools

bearer_scheme = HTTPBearer(auto_error=False)


async def verify_service_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """Command routes are only callable by the chat transport holding SERVICE_TOKEN."""
    expected = get_settings().SERVICE_TOKEN
    if credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid service token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


def get_admin_service(request: Request) -> BookingAdminService:
    return request.app.state.admin_service


def get_server_tools(request: Request) -> ServerTools:
    return request.app.state.server_tools
