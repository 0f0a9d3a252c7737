"""
Tests for the provisioning status callback endpoint.
"""

import pytest
from httpx import AsyncClient

from serverbook.models.status import BookingStatus
from serverbook.services import booking_store


async def running_booking(db, server="server-7"):
    return await booking_store.create_booking(
        db,
        booking_for="1001",
        booking_by="1001",
        region="sydney",
        tier="free",
        variant="tf2-comp",
        status=BookingStatus.RUNNING,
        server=server,
    )


@pytest.mark.asyncio
async def test_closed_callback(client: AsyncClient, db_session):
    """The callback needs no service token."""
    booking = await running_booking(db_session)

    response = await client.post(
        "/booking/callback", params={"status": "closed"}, json={"_id": "server-7"}
    )
    assert response.status_code == 200
    assert response.json() == {"booking_id": booking.id, "status": "CLOSED"}


@pytest.mark.asyncio
async def test_unknown_server(client: AsyncClient):
    response = await client.post(
        "/booking/callback", params={"status": "closed"}, json={"_id": "missing"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_invalid_status(client: AsyncClient, db_session):
    await running_booking(db_session)
    response = await client.post(
        "/booking/callback", params={"status": "exploded"}, json={"_id": "server-7"}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_intermediate_status_is_ignored(client: AsyncClient, db_session):
    await running_booking(db_session)
    response = await client.post(
        "/booking/callback", params={"status": "deallocating"}, json={"_id": "server-7"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "RUNNING"
