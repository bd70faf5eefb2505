"""
Pytest configuration and shared test fixtures.

Tests run against an in-memory SQLite database through aiosqlite so the real
ORM models, repositories and services are exercised. The HTTP client drives
the FastAPI application through httpx's ASGI transport with the database
dependency overridden to the test session.
"""

import os

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("APP_SECRET_KEY", "test-secret-key-with-at-least-32-characters")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("APP_LOG_LEVEL", "WARNING")

from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.core.security import hash_password
from storefront.database.base import Base
from storefront.database.connection import get_db
from storefront.database.models import Category, Product, User, UserRole
from storefront.main import app
from tests.utils import TEST_PASSWORD


@pytest.fixture
async def db_engine():
    """
    Create a fresh in-memory database for each test.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Async session bound to the test database."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Asynchronous HTTP client for the FastAPI application.

    The get_db dependency yields the test session so API calls and direct
    database assertions share state.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Factory creating persisted users."""
    counter = {"value": 0}

    async def _create(
        email: Optional[str] = None,
        role: UserRole = UserRole.CUSTOMER,
        is_active: bool = True,
        password: str = TEST_PASSWORD,
    ) -> User:
        counter["value"] += 1
        user = User(
            email=email or f"user{counter['value']}@example.com",
            password_hash=hash_password(password),
            first_name="Test",
            last_name=f"User{counter['value']}",
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _create


@pytest.fixture
async def customer(user_factory) -> User:
    return await user_factory(email="customer@example.com")


@pytest.fixture
async def admin(user_factory) -> User:
    return await user_factory(email="admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def category_factory(db_session: AsyncSession):
    """Factory creating persisted categories."""

    async def _create(name: str = "Accessories", is_active: bool = True) -> Category:
        category = Category(name=name, is_active=is_active)
        db_session.add(category)
        await db_session.commit()
        return category

    return _create


@pytest.fixture
def product_factory(db_session: AsyncSession):
    """Factory creating persisted products."""
    counter = {"value": 0}

    async def _create(
        name: Optional[str] = None,
        price: str = "10.00",
        stock_quantity: int = 5,
        is_active: bool = True,
        is_featured: bool = False,
        categories: Optional[list[Category]] = None,
    ) -> Product:
        counter["value"] += 1
        product = Product(
            name=name or f"Product {counter['value']}",
            description="Test product",
            price=Decimal(price),
            stock_quantity=stock_quantity,
            is_active=is_active,
            is_featured=is_featured,
        )
        product.categories = list(categories or [])
        db_session.add(product)
        await db_session.commit()
        return product

    return _create

