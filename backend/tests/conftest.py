import random
from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from santa.core.database import build_engine
from santa.core.email import EmailMessage
from santa.core.errors import DeliveryError, DeliveryTimeoutError
from santa.models import Base
from santa.services.game_service import GamePolicy, GameService
from santa.services.matching import MatchingEngine
from santa.services.verification import (
    PendingGame,
    VerificationPolicy,
    VerificationService,
)

# Fixed "now" for deterministic expiry and cooldown tests
TEST_NOW = datetime(2026, 12, 1, 12, 0, tzinfo=UTC)

TEST_ORGANIZER_EMAIL = "organizer@example.com"
TEST_PENDING_GAME = PendingGame(
    name="Office Party",
    event_date=date(2026, 12, 24),
    organizer_email=TEST_ORGANIZER_EMAIL,
)

# Test-only password; low bcrypt cost keeps the suite fast
TEST_ADMIN_PASSWORD = "correct-horse-battery"  # nosec B105
TEST_BCRYPT_ROUNDS = 4


class FakeEmailSender:
    """Records messages instead of sending them.

    Attributes:
        sent: Delivered messages in order.
        failing: Recipient addresses whose delivery fails.
        fail_all: Fail every delivery.
        timeout: Raise DeliveryTimeoutError instead of DeliveryError.
    """

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []
        self.failing: set[str] = set()
        self.fail_all = False
        self.timeout = False

    async def send(self, message: EmailMessage) -> None:
        if self.fail_all or message.to in self.failing:
            if self.timeout:
                raise DeliveryTimeoutError()
            raise DeliveryError()
        self.sent.append(message)

    def sent_to(self, address: str) -> list[EmailMessage]:
        return [m for m in self.sent if m.to == address]


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, now: datetime = TEST_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_verification_service(
    db: AsyncSession,
    sender: FakeEmailSender,
    clock: FakeClock,
    *,
    seed: int = 1234,
    rng: random.Random | None = None,
    **policy: object,
) -> VerificationService:
    """Verification service with a seeded (or given) rng and default limits."""
    return VerificationService(
        db,
        sender,
        policy=VerificationPolicy(**policy),  # type: ignore[arg-type]
        rng=rng or random.Random(seed),
        clock=clock,
    )


def make_game_service(
    db: AsyncSession,
    sender: FakeEmailSender,
    clock: FakeClock,
    *,
    seed: int = 1234,
    **policy: object,
) -> GameService:
    """Game service with a seeded matching engine and default limits."""
    return GameService(
        db,
        sender,
        policy=GamePolicy(**policy),  # type: ignore[arg-type]
        matching=MatchingEngine(random.Random(seed)),
        clock=clock,
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database file per test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# API fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    email_sender: FakeEmailSender,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app with a per-test database.

    Sets up:
    - get_db override bound to the test database
    - get_email_sender override returning the recording fake
    - rate limiting disabled
    """
    from santa.core.database import get_db
    from santa.core.email import get_email_sender
    from santa.core.rate_limiting import limiter
    from santa.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_sender] = lambda: email_sender

    original_enabled = limiter.enabled
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    limiter.enabled = original_enabled
    app.dependency_overrides.clear()
