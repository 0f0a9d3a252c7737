"""
Remote access to a user's running server: RCON commands and the hatch file API
(demos and logs).
"""

import asyncio
from typing import Optional

import httpx
from rcon.exceptions import EmptyResponse, WrongPassword
from rcon.source import rcon
from sqlalchemy.ext.asyncio import AsyncSession

from serverbook import messages
from serverbook.core.config import Settings, get_settings
from serverbook.core.exceptions import NotFoundError, OperationalError, ProvisioningError
from serverbook.core.logging import get_logger
from serverbook.models.booking import Booking
from serverbook.schemas.server import ServerFile, ServerRecord
from serverbook.services import booking_store, preference_service
from serverbook.services.interfaces import ProvisioningGateway
from serverbook.services.preference_service import PreferenceKeys

logger = get_logger(__name__)

DEFAULT_RCON_COMMAND = "status"
UNKNOWN_COMMAND_MARKER = "Unknown command"
MAX_RESPONSE_LENGTH = 1960
MAX_SUGGESTIONS = 24


class ServerTools:
    def __init__(
        self,
        gateway: ProvisioningGateway,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.gateway = gateway
        self.settings = settings or get_settings()
        self._http = http_client or httpx.AsyncClient(timeout=self.settings.RCON_TIMEOUT)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _active_server(self, db: AsyncSession, user_id: str) -> tuple[Booking, ServerRecord]:
        booking = await booking_store.get_active_user_booking(db, user_id)
        if booking is None or not booking.server:
            raise NotFoundError(messages.RCON_NO_SERVER, code="NO_ACTIVE_BOOKING")

        try:
            server = await self.gateway.get_server_info(booking.server)
        except ProvisioningError as e:
            logger.error("server_info_failed", booking_id=booking.id, server=booking.server, error=str(e))
            raise OperationalError(messages.RCON_FAILED, code="SERVER_INFO_FAILED")

        return booking, server

    # RCON

    async def get_command_suggestions(self, db: AsyncSession, user_id: str, text: str = "") -> list[str]:
        """User history first, then the common commands not already in it."""
        commands = await self._known_commands(db, user_id)
        return [command for command in commands if text in command][:MAX_SUGGESTIONS]

    async def _known_commands(self, db: AsyncSession, user_id: str) -> list[str]:
        history = await preference_service.get_data_string_array(
            db, user_id, PreferenceKeys.RCON_COMMAND_HISTORY
        ) or []
        return history + [c for c in self.settings.RCON_COMMON_COMMANDS if c not in history]

    async def send_rcon_command(self, db: AsyncSession, user_id: str, command: Optional[str] = None) -> str:
        command = (command or "").strip() or DEFAULT_RCON_COMMAND
        booking, server = await self._active_server(db, user_id)

        try:
            response = await asyncio.wait_for(
                rcon(
                    command,
                    host=server.ip,
                    port=server.port,
                    passwd=server.rcon_password or "",
                ),
                timeout=self.settings.RCON_TIMEOUT,
            )
        except (asyncio.TimeoutError, OSError, WrongPassword, EmptyResponse) as e:
            logger.error("rcon_failed", booking_id=booking.id, server=server.id, error=repr(e))
            raise OperationalError(messages.RCON_FAILED, code="RCON_FAILED")

        if UNKNOWN_COMMAND_MARKER not in response:
            commands = await self._known_commands(db, user_id)
            if command not in commands:
                commands.append(command)
            await preference_service.store_data(db, user_id, PreferenceKeys.RCON_COMMAND_HISTORY, commands)

        logger.info("rcon_command_sent", booking_id=booking.id, server=server.id, command=command)
        return response[:MAX_RESPONSE_LENGTH] or " "

    # Hatch file API

    @staticmethod
    def hatch_url(server: ServerRecord, path: str) -> str:
        path = path[1:] if path.startswith("/") else path
        return f"http://{server.ip}:{server.hatch_port}/{path}"

    async def _list_files(self, db: AsyncSession, user_id: str, kind: str) -> list[ServerFile]:
        booking, server = await self._active_server(db, user_id)
        password = server.data.get("hatchPassword") or ""

        try:
            response = await self._http.get(self.hatch_url(server, f"files/{kind}"), params={"password": password})
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("hatch_request_failed", booking_id=booking.id, server=server.id, kind=kind, error=str(e))
            raise OperationalError(messages.RCON_FAILED, code="HATCH_FAILED")

        files = []
        for item in response.json():
            file = ServerFile.model_validate(item)
            # Download links carry the hatch password like the listing call
            file.url = str(httpx.URL(self.hatch_url(server, file.url), params={"password": password}))
            files.append(file)
        return files

    async def list_demos(self, db: AsyncSession, user_id: str) -> list[ServerFile]:
        return await self._list_files(db, user_id, "demos")

    async def list_logs(self, db: AsyncSession, user_id: str) -> list[ServerFile]:
        return await self._list_files(db, user_id, "logs")
