"""
Test infrastructure for the Blog API.

Strategy
--------
- SQLite in-memory via aiosqlite, so no Postgres instance is needed.
- StaticPool makes every session share the one in-memory connection;
  a second connection would see an empty database.
- ``get_db`` is overridden so requests use the test session factory.
- Tables are created before and dropped after every test.
- bcrypt runs at its minimum cost factor to keep registration fast.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from blogapi.database import Base, get_db  # noqa: E402
from blogapi.main import app  # noqa: E402
from blogapi.middleware import install_query_counter  # noqa: E402

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
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live session for tests that call services directly."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx client wired to the FastAPI app through ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ---------------------------------------------------------------------------
# Factories shared by the endpoint tests
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def register_user(async_client: AsyncClient):
    """
    Return a coroutine that registers a user and yields
    ``{"token", "user", "headers"}`` for it.
    """
    async def _register(name: str, email: str, password: str = "secret1") -> dict:
        resp = await async_client.post("/api/auth/register", json={
            "name": name,
            "email": email,
            "password": password,
        })
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return {
            "token": body["token"],
            "user": body["user"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }

    return _register


@pytest_asyncio.fixture
async def create_article(async_client: AsyncClient):
    """Return a coroutine that creates an article as the given caller."""
    async def _create(headers: dict, **fields) -> dict:
        payload = {"title": "T", "content": "C", **fields}
        resp = await async_client.post("/api/articles", json=payload, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _create


@pytest_asyncio.fixture
async def alice(register_user) -> dict:
    return await register_user("Alice", "a@x.com")


@pytest_asyncio.fixture
async def bob(register_user) -> dict:
    return await register_user("Bob", "b@x.com")
