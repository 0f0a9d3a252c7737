"""
Pytest fixtures: in-memory database, fake collaborators, catalog and client.

Environment is configured before the application is imported so settings,
the cache layer and the session module pick up test values.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("SERVICE_TOKEN", "test-token")
os.environ.setdefault("PREMIUM_TIER_1_ROLE", "role-t1")
os.environ.setdefault("PREMIUM_TIER_2_ROLE", "role-t2")
os.environ.setdefault("PREMIUM_TIER_3_ROLE", "role-t3")
os.environ.setdefault("CALLBACK_BASE_URL", "http://booking.test")

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from serverbook.api.deps import get_admin_service, get_booking_service, get_server_tools
from serverbook.core.config import get_settings
from serverbook.core.exceptions import MessageNotFoundError, PrivateDeliveryRefusedError
from serverbook.db.base import Base
from serverbook.db.session import get_db
from serverbook.main import app
from serverbook.schemas.message import Member, MessageRef, Severity
from serverbook.schemas.server import ServerRecord, ServerRequest
from serverbook.services.booking_admin_service import BookingAdminService
from serverbook.services.booking_service import BookingService
from serverbook.services.catalog import Catalog
from serverbook.services.interfaces import Notifier, ProvisioningGateway
from serverbook.services.server_tools import ServerTools

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

AUTH_HEADERS = {"Authorization": "Bearer test-token"}

CATALOG = {
    "regions": {
        "sydney": {
            "name": "Sydney",
            "alias": ["syd", "AU"],
            "continent": "australia",
            "tags": ["Oceania", "australia"],
            "default": True,
            "tiers": {
                "free": {"limit": 2, "provider": ["vultr-syd", "aws-syd"]},
                "premium": {
                    "limit": 4,
                    "provider": {"small": "vultr-syd", "medium": ["aws-syd"]},
                    "allowReservation": True,
                    "earlyStart": 300,
                    "minPlayers": 4,
                },
            },
        },
        "bangalore": {
            "name": "Bangalore",
            "alias": ["blr"],
            "continent": "asia",
            "tags": ["asia", "india"],
            "restricted": "T23",
            "tiers": {"free": {"limit": 1, "provider": "aws-blr"}},
        },
        "singapore": {
            "name": "Singapore",
            "alias": ["sg"],
            "continent": "asia",
            "tags": ["asia"],
            "tiers": {
                "free": {"limit": 1, "provider": "aws-sg"},
                "staff": {"limit": 0, "provider": "aws-sg"},
            },
        },
        "staging": {
            "name": "Staging",
            "hidden": True,
            "tags": ["internal"],
            "tiers": {"free": {"limit": 1, "provider": "local"}},
        },
    },
    "variants": {
        "tf2-comp": {"name": "TF2 Competitive", "default": True, "map": "cp_process_f12"},
        "tf2-mge": {"name": "TF2 MGE", "providerSize": "small", "minPlayers": 1, "idleTime": 1800},
    },
}


class FakeGateway(ProvisioningGateway):
    """Scriptable gateway: queue errors per provider, record every call."""

    def __init__(self):
        self.created: list[ServerRequest] = []
        self.closed: list[str] = []
        self.create_errors: dict[str, Exception] = {}
        self.close_error: Optional[Exception] = None
        self.servers: dict[str, ServerRecord] = {}
        self._counter = 0

    async def create_server(self, request: ServerRequest) -> ServerRecord:
        self.created.append(request)
        error = self.create_errors.get(request.provider)
        if error is not None:
            raise error
        self._counter += 1
        server = ServerRecord(
            _id=f"server-{self._counter}",
            provider=request.provider,
            region=request.region,
            game=request.game,
            status="allocating",
            ip="10.0.0.1",
            port=27015,
            data=dict(request.data, tvPort=27020),
        )
        self.servers[server.id] = server
        return server

    async def close_server(self, server_id: str) -> None:
        self.closed.append(server_id)
        if self.close_error is not None:
            raise self.close_error

    async def get_server_info(self, server_id: str) -> ServerRecord:
        return self.servers[server_id]


class FakeNotifier(Notifier):
    """Records messages; can be told to lose messages or refuse DMs."""

    def __init__(self):
        self.sent: list[tuple[str, Severity, str]] = []
        self.edits: list[tuple[MessageRef, Severity, str]] = []
        self.private: list[tuple[str, Severity, str]] = []
        self.members: dict[str, Member] = {}
        self.refuse_private = False
        self.missing_messages: set[str] = set()
        self._counter = 0

    async def send(self, user_id, severity, text, channel=None) -> MessageRef:
        self._counter += 1
        self.sent.append((user_id, severity, text))
        return MessageRef(channel=channel or "users", id=f"msg-{self._counter}")

    async def edit(self, ref, severity, text) -> MessageRef:
        if ref.id in self.missing_messages:
            raise MessageNotFoundError(ref.id)
        self.edits.append((ref, severity, text))
        return ref

    async def send_private(self, user_id, severity, text) -> None:
        if self.refuse_private:
            raise PrivateDeliveryRefusedError(user_id)
        self.private.append((user_id, severity, text))

    async def fetch_member(self, user_id) -> Optional[Member]:
        return self.members.get(user_id)

    @property
    def texts(self) -> list[str]:
        return [text for _, _, text in self.sent] + [text for _, _, text in self.edits]


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def catalog() -> Catalog:
    return Catalog.from_dict(CATALOG)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def service(catalog, gateway, notifier) -> BookingService:
    return BookingService(catalog, gateway, notifier, get_settings())


@pytest.fixture
def admin_service(service) -> BookingAdminService:
    return BookingAdminService(service)


@pytest.fixture
def member() -> Member:
    return Member(id="1001", tag="player")


@pytest.fixture
def premium_member() -> Member:
    return Member(id="2002", roles=["role-t3"], tag="premium")


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, service, admin_service, gateway) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB session and services overridden."""

    async def override_get_db():
        yield db_session

    tools = ServerTools(gateway, get_settings())

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_booking_service] = lambda: service
    app.dependency_overrides[get_admin_service] = lambda: admin_service
    app.dependency_overrides[get_server_tools] = lambda: tools

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    await tools.aclose()


@pytest.fixture
def auth_headers() -> dict:
    return dict(AUTH_HEADERS)
