"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

# Must be set before any app imports that trigger Settings validation
os.environ.setdefault("ENVIRONMENT", "test")

from core.config import Environment, Settings  # noqa: E402
from core.hashing import Argon2PasswordHasher  # noqa: E402
from core.redis import RedisClient  # noqa: E402
from core.tokens import JwtTokenSigner  # noqa: E402
from db.session import create_session_factory, create_tables  # noqa: E402
from services.auth_service import AuthService  # noqa: E402
from services.user_service import UserService  # noqa: E402
from services.user_store import SqlAlchemyUserStore  # noqa: E402

TEST_JWT_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: in-memory database and cheap Argon2 parameters."""
    return Settings(
        _env_file=None,
        environment=Environment.TEST,
        database_url="sqlite+aiosqlite://",
        jwt_secret=TEST_JWT_SECRET,
        argon2_memory_cost=1024,
        argon2_time_cost=1,
        argon2_parallelism=1,
        cors_origins_str="http://localhost:5173",
    )


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """
    Create an in-memory SQLite engine with the schema applied.

    StaticPool keeps a single connection so every session sees the same database.
    """
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(async_engine)


@pytest.fixture
async def redis_client() -> AsyncGenerator[RedisClient]:
    """RedisClient wrapping an isolated fakeredis server (Lua enabled)."""
    client = RedisClient(
        "redis://fake",
        client=FakeAsyncRedis(server=FakeServer()),
    )
    await client.connect()

    yield client

    await client.close()


@pytest.fixture
def hasher(settings: Settings) -> Argon2PasswordHasher:
    return Argon2PasswordHasher.from_settings(settings)


@pytest.fixture
def signer() -> JwtTokenSigner:
    return JwtTokenSigner(TEST_JWT_SECRET)


@pytest.fixture
def user_store(session_factory: async_sessionmaker[AsyncSession]) -> SqlAlchemyUserStore:
    return SqlAlchemyUserStore(session_factory)


@pytest.fixture
def user_service(
    user_store: SqlAlchemyUserStore,
    hasher: Argon2PasswordHasher,
) -> UserService:
    return UserService(user_store, hasher)


@pytest.fixture
def auth_service(
    user_service: UserService,
    hasher: Argon2PasswordHasher,
    signer: JwtTokenSigner,
) -> AuthService:
    return AuthService(user_service, hasher, signer, access_ttl=3600, refresh_ttl=7200)


@pytest.fixture
def app(
    settings: Settings,
    async_engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    redis_client: RedisClient,
) -> FastAPI:
    """Application wired to the test database and fake Redis (lifespan is not run)."""
    from api.container import build_container
    from api.main import create_app

    application = create_app(settings)
    application.state.container = build_container(
        settings, async_engine, session_factory, redis_client,
    )
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create a test client for the application."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client
