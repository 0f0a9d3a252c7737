"""
Notification sink interface.
The engine only needs to post, edit and privately deliver text for a user.
"""

from abc import ABC, abstractmethod
from typing import Optional

from serverbook.schemas.message import Member, MessageRef, Severity


class Notifier(ABC):
    """
    Delivers user-facing status messages.

    Implementations:
    - DiscordNotifier: Discord REST API
    """

    @abstractmethod
    async def send(
        self,
        user_id: str,
        severity: Severity,
        text: str,
        channel: Optional[str] = None,
    ) -> MessageRef:
        """
        Post a message mentioning the user.

        Args:
            user_id: User the message is about
            severity: Message severity
            text: Message text
            channel: Target channel, defaults to the users channel
        """

    @abstractmethod
    async def edit(self, ref: MessageRef, severity: Severity, text: str) -> MessageRef:
        """
        Replace the content of a previously posted message.

        Raises:
            MessageNotFoundError: channel or message no longer exists
        """

    @abstractmethod
    async def send_private(self, user_id: str, severity: Severity, text: str) -> None:
        """
        Deliver a message to the user only.

        Raises:
            PrivateDeliveryRefusedError: user does not accept private messages
            NotificationError: any other delivery failure
        """

    @abstractmethod
    async def fetch_member(self, user_id: str) -> Optional[Member]:
        """Look up a member with its roles, None if unknown."""

    async def aclose(self) -> None:
        """Release transport resources."""
