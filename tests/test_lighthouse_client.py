"""
Tests for the provisioning API client, against a mocked transport.
"""

import json

import httpx
import pytest

from serverbook.core.config import Settings
from serverbook.core.exceptions import (
    ProviderForbiddenError,
    ProviderOverloadedError,
    ProvisioningError,
    ServerAlreadyClosedError,
    ServerCloseInProgressError,
)
from serverbook.infrastructure import LighthouseGateway
from serverbook.schemas.server import ServerRequest

SETTINGS = Settings(LIGHTHOUSE_HOST="http://lighthouse.test", LIGHTHOUSE_CLIENT_SECRET="secret")


def gateway_with(handler) -> LighthouseGateway:
    return LighthouseGateway(SETTINGS, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_create_server():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"_id": "abc", "status": "allocating", "region": "sydney"})

    gateway = gateway_with(handler)
    server = await gateway.create_server(
        ServerRequest(game="tf2-comp", region="sydney", provider="vultr-syd", data={"password": "*"})
    )
    await gateway.aclose()

    assert server.id == "abc"
    assert seen["url"] == "http://lighthouse.test/api/v1/servers"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"]["provider"] == "vultr-syd"
    assert seen["body"]["data"] == {"password": "*"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code, error",
    [
        (429, ProviderOverloadedError),
        (403, ProviderForbiddenError),
        (450, ServerAlreadyClosedError),
        (451, ServerCloseInProgressError),
        (500, ProvisioningError),
    ],
)
async def test_status_codes_map_to_errors(status_code, error):
    gateway = gateway_with(lambda request: httpx.Response(status_code, json={"message": "nope"}))

    with pytest.raises(error) as exc:
        await gateway.close_server("abc")
    await gateway.aclose()

    assert exc.value.status_code == status_code
    assert exc.value.body == {"message": "nope"}


@pytest.mark.asyncio
async def test_transport_failure_is_generic():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    gateway = gateway_with(handler)
    with pytest.raises(ProvisioningError) as exc:
        await gateway.get_server_info("abc")
    await gateway.aclose()

    assert type(exc.value) is ProvisioningError
    assert exc.value.status_code is None


@pytest.mark.asyncio
async def test_get_server_info_keeps_extra_fields():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/servers/abc"
        return httpx.Response(200, json={"_id": "abc", "status": "running", "port": 27015, "hatchPassword": "h"})

    gateway = gateway_with(handler)
    server = await gateway.get_server_info("abc")
    await gateway.aclose()

    assert server.is_running
    assert server.hatch_port == 27017
    assert server.model_extra["hatchPassword"] == "h"
