"""
Notification primitives shared by the engine and the notification sink.
"""

from enum import Enum

from pydantic import BaseModel


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class MessageRef(BaseModel):
    """Location of a posted status message, stored on the booking for later edits."""

    channel: str
    id: str


class Member(BaseModel):
    """A chat member as seen by the transport: id plus the role ids it holds."""

    id: str
    roles: list[str] = []
    bot: bool = False
    tag: str | None = None

    @property
    def display(self) -> str:
        return self.tag or self.id
