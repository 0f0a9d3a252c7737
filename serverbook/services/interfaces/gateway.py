"""
Provisioning gateway interface.
The lifecycle engine depends on this contract, not on the HTTP client behind it.
"""

from abc import ABC, abstractmethod

from serverbook.schemas.server import ServerRecord, ServerRequest


class ProvisioningGateway(ABC):
    """
    Remote service that allocates and tears down game servers.

    Implementations:
    - LighthouseGateway: HTTP client for the provisioning API
    """

    @abstractmethod
    async def create_server(self, request: ServerRequest) -> ServerRecord:
        """
        Request a new server.

        Raises:
            ProviderOverloadedError: provider has no capacity (429)
            ProviderForbiddenError: client may not use the provider (403)
            ProvisioningError: anything else
        """

    @abstractmethod
    async def close_server(self, server_id: str) -> None:
        """
        Request teardown of a server.

        Raises:
            ServerAlreadyClosedError: server is already gone (450)
            ServerCloseInProgressError: teardown already triggered (451)
            ProvisioningError: anything else
        """

    @abstractmethod
    async def get_server_info(self, server_id: str) -> ServerRecord:
        """Fetch the current server record."""

    async def aclose(self) -> None:
        """Release transport resources."""
