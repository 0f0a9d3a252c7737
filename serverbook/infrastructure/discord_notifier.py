"""
Notification sink backed by the Discord REST API.

Messages are posted as a mention plus a single embed whose colour reflects
the severity. Private delivery opens (or reuses) the user's DM channel.
"""

from typing import Any, Optional

import httpx

from serverbook.core.config import Settings, get_settings
from serverbook.core.exceptions import MessageNotFoundError, NotificationError, PrivateDeliveryRefusedError
from serverbook.core.logging import get_logger
from serverbook.schemas.message import Member, MessageRef, Severity
from serverbook.services.interfaces import Notifier

logger = get_logger(__name__)

SEVERITY_COLORS = {
    Severity.SUCCESS: 0x06D6A0,
    Severity.INFO: 0x03A9F4,
    Severity.WARNING: 0xFF9800,
    Severity.ERROR: 0xF44336,
}

# Discord JSON error code for "Cannot send messages to this user"
CANNOT_MESSAGE_USER = 50007

EMBED_TITLE = "Booking"


def build_payload(severity: Severity, text: str, user_id: Optional[str] = None) -> dict:
    payload: dict[str, Any] = {
        "embeds": [{
            "title": EMBED_TITLE,
            "description": text,
            "color": SEVERITY_COLORS.get(severity, 0x212121),
        }],
    }
    if user_id:
        payload["content"] = f"<@{user_id}>"
        payload["allowed_mentions"] = {"users": [user_id]}
    return payload


class DiscordNotifier(Notifier):
    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings = settings or get_settings()
        self.guild_id = settings.DISCORD_GUILD_ID
        self.users_channel_id = settings.DISCORD_USERS_CHANNEL_ID
        self._client = httpx.AsyncClient(
            base_url=settings.DISCORD_API_URL,
            headers={"Authorization": f"Bot {settings.DISCORD_BOT_TOKEN}"},
            timeout=10.0,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("discord_unreachable", method=method, path=path, error=repr(e))
            raise NotificationError(f"Discord request failed: {e!r}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, path: str) -> None:
        if response.is_success:
            return
        if response.status_code == 404:
            raise MessageNotFoundError(f"{path} not found")
        raise NotificationError(f"Discord {path} returned {response.status_code}")

    async def send(
        self,
        user_id: str,
        severity: Severity,
        text: str,
        channel: Optional[str] = None,
    ) -> MessageRef:
        channel = channel or self.users_channel_id
        path = f"/channels/{channel}/messages"
        response = await self._request("POST", path, json=build_payload(severity, text, user_id))
        self._raise_for_status(response, path)
        return MessageRef(channel=channel, id=str(response.json()["id"]))

    async def edit(self, ref: MessageRef, severity: Severity, text: str) -> MessageRef:
        path = f"/channels/{ref.channel}/messages/{ref.id}"
        response = await self._request("PATCH", path, json=build_payload(severity, text))
        self._raise_for_status(response, path)
        return ref

    async def send_private(self, user_id: str, severity: Severity, text: str) -> None:
        response = await self._request("POST", "/users/@me/channels", json={"recipient_id": user_id})
        self._raise_for_status(response, "/users/@me/channels")
        channel = response.json()["id"]

        path = f"/channels/{channel}/messages"
        response = await self._request("POST", path, json=build_payload(severity, text))
        if response.status_code == 403 and _error_code(response) == CANNOT_MESSAGE_USER:
            raise PrivateDeliveryRefusedError(f"User {user_id} does not accept direct messages")
        self._raise_for_status(response, path)

    async def fetch_member(self, user_id: str) -> Optional[Member]:
        response = await self._request("GET", f"/guilds/{self.guild_id}/members/{user_id}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "/guilds/members")

        data = response.json()
        user = data.get("user", {})
        return Member(
            id=str(user.get("id", user_id)),
            roles=[str(role) for role in data.get("roles", [])],
            bot=bool(user.get("bot", False)),
            tag=user.get("username"),
        )


def _error_code(response: httpx.Response) -> Optional[int]:
    try:
        return response.json().get("code")
    except ValueError:
        return None
