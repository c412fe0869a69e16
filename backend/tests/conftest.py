"""
Crowslist Backend — Test Configuration (conftest.py)
======================================================

What:  Shared fixtures: a throwaway SQLite database per test, a fresh
       session store, an image store in tmp_path, and HTTP clients bound to
       an app built from those three.
Why:   Every test starts from empty tables and zero sessions, so tests never
       depend on each other's users or listings.

Fixture Hierarchy (all function-scoped):
    database ──┐
    session_store ──┼── app ── client_factory ── client
    file_service ──┘
    mock_db_session    AsyncSession stand-in for service unit tests
    signup             register + verify helper (leaves the client logged in)

ASGITransport does not run the lifespan, so the `database` fixture creates
the schema itself.

Multi-user tests take one client per user from `client_factory`; each client
has its own cookie jar and therefore its own session.
"""

import os
import tempfile

# Must be set before crowslist.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="crowslist_test_")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["BCRYPT_ROUNDS"] = "10"
os.environ["AUTH_RATE_LIMIT_REQUESTS"] = "100000"
os.environ["REQUIRE_EMAIL_VERIFICATION"] = "true"
os.environ["EXPOSE_VERIFICATION_CODE"] = "true"
os.environ["SEED_SAMPLE_DATA"] = "false"

from datetime import datetime, timedelta, timezone
from typing import Callable, List
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from crowslist.database import Database
from crowslist.main import create_app
from crowslist.services.file_service import FileService
from crowslist.services.session_store import InMemorySessionStore

DEFAULT_PASSWORD = "pw123456"

# Smallest byte strings libmagic recognises as PNG and JPEG
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + b"\x00" * 16
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"


class FakeClock:
    """Controllable "now" for session expiry; pass as `clock=`."""

    def __init__(self):
        self.now = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'crowslist_test.db'}")
    await db.create_schema_if_absent()
    yield db
    await db.dispose()


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def file_service(tmp_path):
    return FileService(tmp_path / "uploads")


@pytest.fixture
def app(database, session_store, file_service):
    return create_app(database=database, session_store=session_store, file_service=file_service)


@pytest_asyncio.fixture
async def client_factory(app):
    """
    Returns a callable producing independent AsyncClients (one per simulated
    user). All of them are closed at teardown.
    """
    clients: List[AsyncClient] = []

    def make() -> AsyncClient:
        c = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(c)
        return c

    yield make

    for c in clients:
        await c.aclose()


@pytest.fixture
def client(client_factory):
    return client_factory()


@pytest.fixture
def signup() -> Callable:
    """
    Register and verify an account through the API.

    Usage:
        user_id = await signup(client, "alice@asu.edu", first_name="Alice")

    On return the client holds the session cookie issued by verify-email.
    """

    async def _signup(
        client: AsyncClient,
        email: str,
        password: str = DEFAULT_PASSWORD,
        first_name: str = "Test",
        last_name: str = "User",
    ) -> int:
        registered = await client.post(
            "/api/register",
            json={
                "email": email,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
            },
        )
        assert registered.status_code == 200, registered.text
        code = registered.json()["verificationCode"]

        verified = await client.post(
            "/api/verify-email",
            json={"email": email, "verificationCode": code},
        )
        assert verified.status_code == 200, verified.text
        return verified.json()["user"]["id"]

    return _signup


@pytest.fixture
def mock_db_session():
    """
    AsyncSession stand-in for service unit tests.

    Usage:
        result = MagicMock()
        result.first.return_value = None
        mock_db_session.execute.return_value = result
        mock_db_session.flush.side_effect = IntegrityError(...)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.add = MagicMock()
    return session
