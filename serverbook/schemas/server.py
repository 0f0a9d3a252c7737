"""
Server records exchanged with the provisioning service.

Only the fields the booking lifecycle depends on are modelled; anything else
the service sends is kept in the model via ``extra="allow"``.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ServerStatus(str, Enum):
    ALLOCATING = "allocating"
    WAITING = "waiting"
    IDLE = "idle"
    RUNNING = "running"
    CLOSING = "closing"
    DEALLOCATING = "deallocating"
    CLOSED = "closed"
    FAILED = "failed"


NOT_RUNNING_STATUSES = {
    ServerStatus.CLOSED.value,
    ServerStatus.CLOSING.value,
    ServerStatus.ALLOCATING.value,
    ServerStatus.WAITING.value,
    ServerStatus.DEALLOCATING.value,
}


class ServerRequest(BaseModel):
    """Body of a server creation request; passwords, close thresholds and the
    callback address travel in the free-form data bag."""

    game: str
    region: str
    provider: str
    data: dict[str, Any] = Field(default_factory=dict)


class ServerRecord(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(alias="_id")
    client: Optional[str] = None
    provider: str = ""
    region: str = ""
    game: str = ""
    status: Optional[str] = None
    ip: Optional[str] = None
    port: Optional[int] = None
    tvPort: Optional[int] = None
    password: Optional[str] = None
    rconPassword: Optional[str] = None
    createdAt: Optional[datetime] = None
    closeAt: Optional[datetime] = None
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.status is not None and self.status.lower() not in NOT_RUNNING_STATUSES

    @property
    def rcon_password(self) -> Optional[str]:
        return self.data.get("rconPassword") or self.rconPassword

    @property
    def hatch_port(self) -> Optional[int]:
        if self.port is None:
            return None
        return 27017 if self.port == 27015 else self.port + 2


class ServerFile(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    url: str
    modifiedAt: Optional[datetime] = None
