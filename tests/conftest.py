"""
Pytest configuration and shared fixtures.

Tests run against an in-memory SQLite database (aiosqlite) created from the
SQLModel metadata, with Redis and the arq queue replaced by mocks. The
environment below is set before any ``app`` import so the settings object
picks it up.
"""

import os

os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-0123456789abcdef0123456789")
os.environ.setdefault("CSRF_SECRET", "test-csrf-secret-0123456789abcdef012345678")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:3000")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_storefront")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_storefront")

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402
from decimal import Decimal  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from app import models  # noqa: E402,F401  registers tables on SQLModel.metadata
from app.config import Role  # noqa: E402
from app.core.database import get_db  # noqa: E402
from app.core.redis import get_redis  # noqa: E402
from app.core.security import get_password_hash  # noqa: E402
from app.main import app as main_app  # noqa: E402
from app.models.category import Categories  # noqa: E402
from app.models.product import Products  # noqa: E402
from app.models.user import Users  # noqa: E402

from tests.helpers import DEFAULT_PASSWORD  # noqa: E402


@pytest.fixture(scope="function")
async def engine():
    """
    Fresh in-memory database per test.

    StaticPool keeps the single SQLite connection alive so every session in
    the test sees the same database.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def redis_mock() -> AsyncMock:
    """
    Redis double for the rate limiter: every counter reads as empty, so
    requests are never limited unless a test changes ``get``.
    """
    client = AsyncMock()
    client.get.return_value = None
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[1, True])
    client.pipeline = MagicMock(return_value=pipe)
    return client


@pytest.fixture(scope="function")
def app(db_session: AsyncSession, redis_mock: AsyncMock) -> FastAPI:
    """
    FastAPI app wired to the test database session and the Redis mock.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_redis() -> AsyncGenerator[AsyncMock, None]:
        yield redis_mock

    main_app.dependency_overrides[get_db] = override_get_db
    main_app.dependency_overrides[get_redis] = override_get_redis

    yield main_app

    main_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for API tests. Keeps cookies between requests like a
    browser would.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[Users]]:
    """
    Factory creating committed users with a real bcrypt hash.

    Usage:
        user = await make_user("alice", role=Role.ADMIN)
    """

    async def _make(
        username: str,
        password: str = DEFAULT_PASSWORD,
        role: str = Role.USER,
        email: str | None = None,
        user_id: int | None = None,
    ) -> Users:
        user = Users(
            user_id=user_id,
            username=username,
            email=email or f"{username}@example.com",
            password_hash=await get_password_hash(password),
            role=role,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
async def test_user(make_user) -> Users:
    return await make_user("shopper1")


@pytest.fixture
async def other_user(make_user) -> Users:
    return await make_user("shopper2")


@pytest.fixture
async def admin_user(make_user) -> Users:
    return await make_user("admin01", role=Role.ADMIN)


@pytest.fixture
async def category(db_session: AsyncSession) -> Categories:
    category = Categories(name="Keyboards", image_url="https://cdn.example.com/keyboards.png")
    db_session.add(category)
    await db_session.commit()
    await db_session.refresh(category)
    return category


@pytest.fixture
def make_product(db_session: AsyncSession, category: Categories) -> Callable[..., Awaitable[Products]]:
    """
    Factory creating committed products in the ``category`` fixture.

    Usage:
        product = await make_product("Tenkeyless", price="79.90")
    """

    async def _make(name: str, price: str = "10.00", category_id: int | None = None) -> Products:
        product = Products(
            name=name,
            description=f"{name} description",
            price=Decimal(price),
            category_id=category_id or category.category_id,
        )
        db_session.add(product)
        await db_session.commit()
        await db_session.refresh(product)
        return product

    return _make
