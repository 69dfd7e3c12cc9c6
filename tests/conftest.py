"""
Test infrastructure for the CMS API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI.  StaticPool makes every session share the one connection
  that holds the in-memory database, and foreign keys are switched on so
  ``ON DELETE CASCADE`` behaves as it does on Postgres.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after.
- Redis is detached before every test (``cache._redis = None``); the
  CacheManager then treats every read as a miss and every write as a no-op.
  Tests that exercise caching request the ``redis_store`` fixture, which
  plugs in ``InMemoryRedis``.
- Settings are read at import time, so the environment is prepared before
  anything from ``cms`` is imported (cheap bcrypt rounds, sqlite URL).
"""
import fnmatch
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, update
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from cms.cache import cache
from cms.database import Base, get_db
from cms.main import app
from cms.middleware import install_query_counter
from cms.models import Role, User

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)


@event.listens_for(engine_test.sync_engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# In-memory Redis double
# ---------------------------------------------------------------------------

class InMemoryRedis:
    """
    The slice of the ``redis.asyncio.Redis`` API that CacheManager uses,
    backed by a dict.  TTLs are recorded, not enforced.  Setting
    ``fail = True`` makes every command raise ``redis.exceptions.ConnectionError``.
    """

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("redis is down")

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def scan_iter(self, match: str = "*"):
        self._check()
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self) -> None:
        pass


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
    cache._redis = None


@pytest_asyncio.fixture
async def redis_store() -> InMemoryRedis:
    """Attach an in-memory Redis to the shared CacheManager."""
    store = InMemoryRedis()
    cache._redis = store
    return store


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that call services directly.
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register(client: AsyncClient, email: str, password: str = "secret1") -> dict:
    """Register through the API; return the tokens plus the new user's id."""
    resp = await client.post("/api/v1/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    tokens = resp.json()
    me = await client.get("/api/v1/users/me", headers=bearer(tokens["access_token"]))
    tokens["id"] = me.json()["id"]
    return tokens


async def set_role(user_id: str, role: Role) -> None:
    """Change a user's role directly in the database."""
    async with async_session_test() as session:
        await session.execute(update(User).where(User.id == user_id).values(role=role))
        await session.commit()
