"""Pytest configuration and fixtures."""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from emdr.core.deps import get_db
from emdr.core.security import create_session_token
from emdr.db.base import Base
from emdr.db import models_registry  # noqa: F401 - Import to register models
from emdr.editor.defaults import new_draft
from emdr.main import app
from emdr.models.session import LoginSession
from emdr.models.user import User
from emdr.schemas.protocol import (
    ChannelItem,
    Fragment,
    ProtocolType,
    StandardProtocol,
    Stimulation,
)

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def plain_hash(password: str) -> str:
    """Test hash format accepted by verify_password without bcrypt."""
    return f"$plain${hashlib.sha256(password.encode()).hexdigest()}"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(test_engine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with overridden dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_user(db_session: AsyncSession) -> User:
    """Create test user."""
    user = User(
        id="test-user",
        username="therapeut",
        hashed_password=plain_hash("testpassword"),
        display_name="Test Therapeut",
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture(scope="function")
async def other_user(db_session: AsyncSession) -> User:
    """Create a second therapist."""
    user = User(
        id="other-user",
        username="kollegin",
        hashed_password=plain_hash("otherpassword"),
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


async def open_session(db: AsyncSession, user: User, days: int = 7) -> str:
    """Insert a session row and return its signed token."""
    expires_at = datetime.now(timezone.utc) + timedelta(days=days)
    session = LoginSession(user_id=user.id, expires_at=expires_at)
    db.add(session)
    await db.commit()
    await db.refresh(session)
    return create_session_token(user.id, session.id, expires_at)


@pytest_asyncio.fixture(scope="function")
async def auth_headers(db_session: AsyncSession, test_user: User) -> dict:
    """Create authorization headers."""
    token = await open_session(db_session, test_user)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(scope="function")
async def other_auth_headers(db_session: AsyncSession, other_user: User) -> dict:
    """Create authorization headers for the second therapist."""
    token = await open_session(db_session, other_user)
    return {"Authorization": f"Bearer {token}"}


def make_standard(
    chiffre: str = "P-001",
    protokollnummer: str = "1",
    protocol_type: ProtocolType = ProtocolType.STANDARD,
    **metadata,
) -> StandardProtocol:
    """Complete standard protocol with one stimulation/fragment pair."""
    draft = new_draft(
        protocol_type,
        chiffre=chiffre,
        datum=metadata.pop("datum", "2024-03-01"),
        protokollnummer=protokollnummer,
        **metadata,
    )
    return draft.model_copy(update={
        "start_knoten": "Belastende Erinnerung",
        "channel": [
            ChannelItem(
                stimulation=Stimulation(anzahl_bewegungen=24),
                fragment=Fragment(text="Bild wird heller"),
            )
        ],
    })


@pytest.fixture
def standard_protocol() -> StandardProtocol:
    """A valid standard protocol."""
    return make_standard()


@pytest.fixture
def standard_payload(standard_protocol: StandardProtocol) -> dict:
    """A valid standard protocol in wire form."""
    return standard_protocol.model_dump(mode="json", by_alias=True)


@pytest.fixture
def protocol_factory():
    """Factory for valid standard protocols."""
    return make_standard
