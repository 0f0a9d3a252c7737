"""
Tests for admin booking endpoints and status reports.
"""

import pytest
from httpx import AsyncClient

from serverbook.models.status import BookingStatus
from serverbook.schemas.booking import BookingOptions
from serverbook.services import booking_store

ADMIN = {"id": "9000", "roles": []}


async def add_booking(db, user_id, status=BookingStatus.RUNNING, region="sydney", server="server-8"):
    return await booking_store.create_booking(
        db,
        booking_for=user_id,
        booking_by=user_id,
        region=region,
        tier="free",
        variant="tf2-comp",
        status=status,
        server=server,
    )


@pytest.mark.asyncio
async def test_admin_books_restricted_region(client: AsyncClient, auth_headers):
    """Admin bookings skip region restrictions."""
    body = {"member": ADMIN, "booking_for": {"id": "1001", "tag": "player"}, "region": "blr"}
    response = await client.post("/api/v1/admin/bookings", json=body, headers=auth_headers)
    assert response.status_code == 201
    booking = response.json()["booking"]
    assert booking["region"] == "bangalore"
    assert booking["booking_for"] == "1001"
    assert booking["booking_by"] == "9000"


@pytest.mark.asyncio
async def test_admin_book_respects_active_booking(client: AsyncClient, auth_headers, db_session):
    await add_booking(db_session, "1001")
    body = {"member": ADMIN, "booking_for": {"id": "1001", "tag": "player"}, "region": "sydney"}
    response = await client.post("/api/v1/admin/bookings", json=body, headers=auth_headers)
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "ADMIN_ALREADY_EXISTS"
    assert detail["message"] == "player already has an active booking."


@pytest.mark.asyncio
async def test_admin_book_respects_pending_reservation(client: AsyncClient, auth_headers, db_session):
    await add_booking(db_session, "1001", status=BookingStatus.RESERVED, server=None)
    body = {"member": ADMIN, "booking_for": {"id": "1001", "tag": "player"}, "region": "sydney"}
    response = await client.post("/api/v1/admin/bookings", json=body, headers=auth_headers)
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "ADMIN_RESERVATION_ALREADY_EXISTS"
    assert detail["message"] == "player already has a scheduled reservation."
    assert await booking_store.get_active_user_bookings(db_session, "1001") == []


@pytest.mark.asyncio
async def test_admin_book_unknown_tier(client: AsyncClient, auth_headers):
    body = {"member": ADMIN, "booking_for": {"id": "1001"}, "region": "sydney", "tier": "gold"}
    response = await client.post("/api/v1/admin/bookings", json=body, headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "TIER_UNKNOWN"


@pytest.mark.asyncio
async def test_admin_unbook(client: AsyncClient, auth_headers, db_session, gateway):
    await add_booking(db_session, "1001")
    response = await client.delete(
        "/api/v1/admin/bookings/users/1001", params={"user_display": "player"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["booking"]["status"] == "CLOSING"
    assert gateway.closed == ["server-8"]

    response = await client.delete("/api/v1/admin/bookings/users/1002", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_global_status(client: AsyncClient, auth_headers, db_session):
    response = await client.get("/api/v1/admin/status", headers=auth_headers)
    assert response.json()["text"] == "There are no active bookings."

    booking = await add_booking(db_session, "1001")
    response = await client.get("/api/v1/admin/status", headers=auth_headers)
    assert response.json()["text"] == f"Active: 1\n{booking.id} (1001) [sydney, free]"


@pytest.mark.asyncio
async def test_user_and_region_status(client: AsyncClient, auth_headers, db_session):
    await add_booking(db_session, "1001", status=BookingStatus.CLOSED)
    await add_booking(db_session, "1001", status=BookingStatus.CLOSED)

    response = await client.get("/api/v1/admin/status", params={"user": "1001"}, headers=auth_headers)
    text = response.json()["text"]
    assert text.startswith("Total Bookings: 2")
    assert "does not have any active bookings" in text

    response = await client.get("/api/v1/admin/status", params={"region": "syd"}, headers=auth_headers)
    assert response.json()["text"].startswith("Total Bookings: 2")

    response = await client.get("/api/v1/admin/status", params={"region": "mars"}, headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_booking_status_with_live_server(admin_service, service, db_session, gateway, member):
    outcome = await service.create_booking_request(
        db_session,
        BookingOptions(
            booking_for=member, booking_by=member, region="sydney", tier="free", variant="tf2-comp"
        ),
    )
    gateway.servers["server-1"].status = "running"

    text = await admin_service.get_booking_status(outcome.booking)

    assert f"Booking ID:  {outcome.booking.id}" in text
    assert "S. Server:   running" in text
    assert "S. Booking:  STARTING" in text
    assert "connect 10.0.0.1:27015" in text
