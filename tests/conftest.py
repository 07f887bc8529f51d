"""
Test infrastructure for the KnowHive API.

Strategy
--------
- SQLite in-memory via aiosqlite replaces Postgres, keeping the suite
  self-contained.
- StaticPool makes every async task share the same in-memory connection;
  a second connection would see an empty database.
- ``get_db`` is overridden so requests use the test session factory
  instead of the one the lifespan builds (ASGITransport does not run
  the lifespan).
- ``get_mailer`` is overridden with a recording fake, so no SMTP server
  is contacted.
- Tables are created before each test and dropped after it.
- Redis is disabled with ``cache._redis = None``, which ArticleCache treats
  as a permanent miss, so reads always reach the store.  Tests that need
  a live cache use the ``redis_cache`` fixture (a dict-backed FakeRedis).
"""
import fnmatch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.cache import cache
from app.database import Base, get_db, install_query_counter, session_scope
from app.dependencies import get_mailer
from app.errors import MailFailure
from app.main import app
from app.mailer import MailMessage
from app.security import TokenService

# ---------------------------------------------------------------------------
# Test database engine — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency overrides
# ---------------------------------------------------------------------------

async def override_get_db():
    async with session_scope(async_session_test) as session:
        yield session


class FakeMailer:
    """Records messages instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[MailMessage] = []
        self.fail = False

    async def send(self, message: MailMessage) -> None:
        if self.fail:
            raise MailFailure()
        self.sent.append(message)


fake_mailer = FakeMailer()


class FakeRedis:
    """Dict-backed stand-in for the redis.asyncio calls ArticleCache makes."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self.data[key] = value

    async def scan_iter(self, match: str = "*"):
        for key in list(self.data):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def delete(self, *keys: str) -> int:
        return sum(self.data.pop(key, None) is not None for key in keys)

    async def aclose(self) -> None:
        pass


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_mailer] = lambda: fake_mailer


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def mailer() -> FakeMailer:
    fake_mailer.sent.clear()
    fake_mailer.fail = False
    return fake_mailer


@pytest.fixture
def token_service() -> TokenService:
    """The token service the running app verifies against."""
    return app.state.token_service


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that call services directly or
    seed rows the API can not create (e.g. articles without timestamps).
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def redis_cache() -> FakeRedis:
    """Attach a FakeRedis to the article cache for the duration of a test."""
    fake = FakeRedis()
    cache._redis = fake
    yield fake
    cache._redis = None
