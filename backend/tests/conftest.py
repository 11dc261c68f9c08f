"""Pytest configuration and shared fixtures."""

from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.main import app
from app.models.user import User

# Test database URL - use StaticPool so in-memory SQLite shares one connection
# (NullPool creates a new connection per call, losing all tables each time)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Tests never talk to a real classification oracle
settings.CLASSIFIER_ORACLE_URL = None


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    # Import all models to ensure they're registered with Base.metadata
    from app import models  # noqa: F401

    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable foreign keys for SQLite."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def db(db_session: AsyncSession) -> AsyncSession:
    """Alias for db_session to match test function signatures."""
    return db_session


@pytest.fixture(scope="function")
def override_get_db(db_session: AsyncSession):
    """Override the get_db dependency."""

    async def _override_get_db():
        yield db_session

    return _override_get_db


@pytest_asyncio.fixture(scope="function")
async def async_client(override_get_db) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    user = User(id=uuid4(), email="test@example.com", display_name="Test User", is_active=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def second_user(db_session: AsyncSession) -> User:
    """Create a second test user for ownership isolation tests."""
    user = User(id=uuid4(), email="other@example.com", display_name="Other User", is_active=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Create authentication headers with access token."""
    access_token = create_access_token(data={"sub": str(test_user.id), "email": test_user.email})
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def second_auth_headers(second_user: User) -> dict:
    access_token = create_access_token(data={"sub": str(second_user.id), "email": second_user.email})
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def transactions_csv() -> str:
    """A small bank export in the canonical transactions shape."""
    return (
        "Date,Amount,Payee,Account,Category\n"
        "2024-01-15,-42.50,Coffee Shop,Chase Checking,Dining\n"
        "2024-01-16,2500.00,Acme Corp,Chase Checking,Salary\n"
        "2024-01-17,-120.00,Grocer,Chase Checking,Groceries\n"
    )


@pytest.fixture
def accounts_csv() -> str:
    return (
        "Account Name,Account Type,Currency,Balance\n"
        "Everyday,Checking,USD,1500.00\n"
        "Rainy Day,Savings Acct,usd,10000\n"
    )
