"""Shared fixtures: in-memory database, controllable clock, wired app."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ceg_connect.api.deps import AppServices
from ceg_connect.config import OTPDeliveryMode
from ceg_connect.main import create_app
from ceg_connect.models import community, group, user  # noqa: F401
from ceg_connect.models.base import Base
from ceg_connect.services.challenge_store import InMemoryChallengeStore, RedisChallengeStore
from ceg_connect.services.email_service import EmailService
from ceg_connect.services.identity import LocalIdentityIssuer
from ceg_connect.services.otp_manager import OTPSessionManager
from ceg_connect.services.sweeper import ChallengeSweeper

TEST_SECRET = "test-secret-0123456789abcdef01234567"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def email_service():
    """Mocked email service, never actually sends emails."""
    svc = EmailService()
    svc.send_otp = AsyncMock()
    return svc


@pytest.fixture
def issuer(session_factory) -> LocalIdentityIssuer:
    return LocalIdentityIssuer(session_factory, TEST_SECRET)


@pytest.fixture
def delivery_mode() -> OTPDeliveryMode:
    return OTPDeliveryMode.SEND_ONLY


@pytest.fixture
def services(session_factory, issuer, email_service, clock, delivery_mode) -> AppServices:
    store = InMemoryChallengeStore()
    manager = OTPSessionManager(
        store, issuer, email_service, delivery_mode=delivery_mode, clock=clock
    )
    return AppServices(
        session_factory=session_factory,
        otp_manager=manager,
        identity_issuer=issuer,
        sweeper=ChallengeSweeper(store, clock=clock),
    )


@pytest.fixture
def redis_server():
    fakeredis = pytest.importorskip("fakeredis")
    return fakeredis.FakeServer()


@pytest_asyncio.fixture
async def redis_store(redis_server, clock):
    """Redis challenge store on fakeredis, sharing the test clock."""
    import fakeredis

    client = fakeredis.FakeAsyncRedis(server=redis_server)
    store = RedisChallengeStore(client, key_prefix="test:otp:", clock=clock)
    yield store
    await client.flushall()
    await store.close()


@pytest_asyncio.fixture
async def client(services):
    app = create_app(services)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def login(issuer):
    """Return auth headers for *email*, creating the user on first use."""

    async def _login(email: str) -> dict[str, str]:
        uid = await issuer.find_or_create_identity(email)
        token = await issuer.issue_credential(uid, {"email": email, "verified": True})
        return {"Authorization": f"Bearer {token}"}

    return _login
