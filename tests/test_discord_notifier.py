"""
Tests for the Discord notification sink, against a mocked transport.
"""

import json

import httpx
import pytest

from serverbook.core.config import Settings
from serverbook.core.exceptions import MessageNotFoundError, NotificationError, PrivateDeliveryRefusedError
from serverbook.infrastructure import DiscordNotifier
from serverbook.infrastructure.discord_notifier import SEVERITY_COLORS, build_payload
from serverbook.schemas.message import MessageRef, Severity

SETTINGS = Settings(
    DISCORD_API_URL="http://discord.test/api",
    DISCORD_BOT_TOKEN="bot-token",
    DISCORD_GUILD_ID="guild",
    DISCORD_USERS_CHANNEL_ID="users",
)


def notifier_with(handler) -> DiscordNotifier:
    return DiscordNotifier(SETTINGS, transport=httpx.MockTransport(handler))


def test_payload_mentions_user():
    payload = build_payload(Severity.WARNING, "hello", "42")
    assert payload["content"] == "<@42>"
    assert payload["embeds"][0]["description"] == "hello"
    assert payload["embeds"][0]["color"] == SEVERITY_COLORS[Severity.WARNING]
    assert "content" not in build_payload(Severity.INFO, "hello")


@pytest.mark.asyncio
async def test_send_returns_reference():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/channels/users/messages"
        assert request.headers["Authorization"] == "Bot bot-token"
        return httpx.Response(200, json={"id": 555})

    notifier = notifier_with(handler)
    ref = await notifier.send("42", Severity.INFO, "starting")
    await notifier.aclose()

    assert ref == MessageRef(channel="users", id="555")


@pytest.mark.asyncio
async def test_edit_missing_message():
    notifier = notifier_with(lambda request: httpx.Response(404, json={"code": 10008}))
    with pytest.raises(MessageNotFoundError):
        await notifier.edit(MessageRef(channel="users", id="1"), Severity.SUCCESS, "done")
    await notifier.aclose()


@pytest.mark.asyncio
async def test_private_message_refused():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/users/@me/channels"):
            assert json.loads(request.content) == {"recipient_id": "42"}
            return httpx.Response(200, json={"id": "dm-1"})
        return httpx.Response(403, json={"code": 50007, "message": "Cannot send messages to this user"})

    notifier = notifier_with(handler)
    with pytest.raises(PrivateDeliveryRefusedError):
        await notifier.send_private("42", Severity.SUCCESS, "details")
    await notifier.aclose()


@pytest.mark.asyncio
async def test_other_failures_are_notification_errors():
    notifier = notifier_with(lambda request: httpx.Response(500))
    with pytest.raises(NotificationError) as exc:
        await notifier.send("42", Severity.INFO, "starting")
    await notifier.aclose()
    assert not isinstance(exc.value, MessageNotFoundError)


@pytest.mark.asyncio
async def test_fetch_member():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/members/42"):
            return httpx.Response(200, json={"user": {"id": "42", "username": "player"}, "roles": [7, 8]})
        return httpx.Response(404, json={"code": 10007})

    notifier = notifier_with(handler)
    member = await notifier.fetch_member("42")
    missing = await notifier.fetch_member("43")
    await notifier.aclose()

    assert member.roles == ["7", "8"]
    assert member.display == "player"
    assert missing is None
