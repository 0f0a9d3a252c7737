"""
HTTP client for the Lighthouse provisioning API.

Maps the service's status codes onto the gateway's typed errors; transport
failures and timeouts surface as a generic ProvisioningError.
"""

from typing import Any, Optional

import httpx

from serverbook.core.config import Settings, get_settings
from serverbook.core.exceptions import (
    ProviderForbiddenError,
    ProviderOverloadedError,
    ProvisioningError,
    ServerAlreadyClosedError,
    ServerCloseInProgressError,
)
from serverbook.core.logging import get_logger
from serverbook.schemas.server import ServerRecord, ServerRequest
from serverbook.services.interfaces import ProvisioningGateway

logger = get_logger(__name__)

_ERRORS_BY_STATUS = {
    429: ProviderOverloadedError,
    403: ProviderForbiddenError,
    450: ServerAlreadyClosedError,
    451: ServerCloseInProgressError,
}


class LighthouseGateway(ProvisioningGateway):
    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings = settings or get_settings()
        self._client = httpx.AsyncClient(
            base_url=settings.LIGHTHOUSE_HOST.rstrip("/") + "/api/v1",
            headers={"Authorization": f"Bearer {settings.LIGHTHOUSE_CLIENT_SECRET}"},
            timeout=settings.LIGHTHOUSE_TIMEOUT,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("lighthouse_unreachable", method=method, path=path, error=repr(e))
            raise ProvisioningError(f"Lighthouse request failed: {e!r}") from e

        if response.is_success:
            return response.json() if response.content else None

        body = _safe_body(response)
        error_class = _ERRORS_BY_STATUS.get(response.status_code, ProvisioningError)
        logger.debug("lighthouse_error", method=method, path=path, status_code=response.status_code, body=body)
        raise error_class(
            f"Lighthouse {method} {path} returned {response.status_code}",
            status_code=response.status_code,
            body=body,
        )

    async def create_server(self, request: ServerRequest) -> ServerRecord:
        data = await self._request("POST", "/servers", json=request.model_dump(mode="json"))
        return ServerRecord.model_validate(data)

    async def close_server(self, server_id: str) -> None:
        await self._request("DELETE", f"/servers/{server_id}")

    async def get_server_info(self, server_id: str) -> ServerRecord:
        data = await self._request("GET", f"/servers/{server_id}")
        return ServerRecord.model_validate(data)


def _safe_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
