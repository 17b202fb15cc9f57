import os

# Set test environment
os.environ["DEBUG"] = "true"
os.environ["SECRET_KEY"] = "change-me-in-production"
os.environ["SESSION_COOKIE_SECURE"] = "false"
os.environ.pop("GOOGLE_CLIENT_ID", None)

# SQLite in memory by default; set TEST_DATABASE_URL to run against PostgreSQL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

import base64
import json
from collections.abc import AsyncGenerator
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pinauth.database import Base, get_db
from pinauth.main import app
from pinauth.models import User
from pinauth.services.mailer import DeliveryResult, EmailMessage, get_mailer


class FakeMailer:
    """Records outgoing messages instead of talking to SMTP."""

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []
        self.fail = False
        self.error: Exception | None = None

    async def send(self, message: EmailMessage) -> DeliveryResult:
        self.sent.append(message)
        if self.error is not None:
            raise self.error
        if self.fail:
            return DeliveryResult(success=False, error="connection refused")
        return DeliveryResult(success=True)


def make_google_credential(payload: dict[str, Any]) -> str:
    """Build an unsigned compact JWS with ``payload`` as its claims."""

    def encode(data: bytes) -> str:
        return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")

    header = encode(json.dumps({"alg": "RS256", "typ": "JWT"}).encode("utf-8"))
    body = encode(json.dumps(payload).encode("utf-8"))
    return f"{header}.{body}.c2lnbmF0dXJl"


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create async engine for each test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession, mailer: FakeMailer
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database and mailer overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user with a unique email."""
    unique_id = uuid4()
    user = User(
        id=unique_id,
        email=f"test-{unique_id}@example.com",
        display_name="Test User",
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def inactive_user(db_session: AsyncSession) -> User:
    user = User(
        email=f"inactive-{uuid4()}@example.com",
        display_name="Inactive User",
        is_active=False,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def google_payload(test_user: User) -> dict[str, Any]:
    """Claims of a Google ID token for the test user."""
    return {
        "iss": "https://accounts.google.com",
        "aud": "client-123.apps.googleusercontent.com",
        "sub": "110169484474386276334",
        "email": test_user.email,
        "name": "Test User",
        "given_name": "Test",
        "family_name": "User",
        "picture": "https://lh3.googleusercontent.com/a/photo.jpg",
    }


@pytest.fixture
def make_credential():
    """Factory for unsigned Google credentials."""
    return make_google_credential
