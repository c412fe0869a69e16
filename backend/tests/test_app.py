"""
Crowslist Backend — Application Factory & Request Transaction Tests
=====================================================================

What:  create_app() keeps the collaborators it is given, and a request's
       writes are committed before its response reaches the client.
How:   The commit-ordering tests drive the app with raw ASGI messages and
       count rows from inside `send`, at the moment the last body chunk
       goes out.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from crowslist.database import Database
from crowslist.deps import get_db_session
from crowslist.exceptions import DatabaseError
from crowslist.main import create_app
from crowslist.models import EmailVerification, Listing, User
from crowslist.services.file_service import FileService
from crowslist.services.session_store import InMemorySessionStore
from tests.conftest import DEFAULT_PASSWORD


class TestCreateApp:

    def test_keeps_empty_injected_session_store(self, database, file_service):
        store = InMemorySessionStore()
        assert len(store) == 0

        app = create_app(database=database, session_store=store, file_service=file_service)

        assert app.state.session_store is store
        assert app.state.database is database
        assert app.state.file_service is file_service

    @pytest.mark.asyncio
    async def test_sessions_land_in_injected_store(self, app, session_store, client, signup):
        assert app.state.session_store is session_store
        await signup(client, "alice@asu.edu")
        assert len(session_store) == 1

    @pytest.mark.asyncio
    async def test_defaults_built_when_nothing_injected(self):
        app = create_app()
        assert isinstance(app.state.database, Database)
        assert isinstance(app.state.session_store, InMemorySessionStore)
        assert isinstance(app.state.file_service, FileService)
        await app.state.database.dispose()


async def call_app(app, method, path, body=b"", headers=(), on_final_body=None):
    """
    Run one request through the ASGI app.

    `on_final_body` is awaited when the last http.response.body message is
    sent, before the app returns. Returns (status, decoded JSON body).
    """
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "query_string": b"",
        "root_path": "",
        "headers": [(b"host", b"test"), (b"content-length", str(len(body)).encode()), *headers],
        "client": ("127.0.0.1", 50000),
        "server": ("test", 80),
    }
    pending = [{"type": "http.request", "body": body, "more_body": False}]
    finished = asyncio.Event()
    status = {}
    chunks = []

    async def receive():
        if pending:
            return pending.pop(0)
        await finished.wait()
        return {"type": "http.disconnect"}

    async def send(message):
        if message["type"] == "http.response.start":
            status["code"] = message["status"]
        elif message["type"] == "http.response.body":
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                if on_final_body is not None:
                    await on_final_body()
                finished.set()

    await app(scope, receive, send)
    return status["code"], json.loads(b"".join(chunks))


async def _count(database, column):
    rows = await database.execute(select(func.count(column).label("n")))
    return rows[0]["n"]


class TestCommitBeforeResponse:

    @pytest.mark.asyncio
    async def test_register_rows_exist_when_response_sent(self, app, database):
        seen = {}

        async def snapshot():
            seen["users"] = await _count(database, User.id)
            seen["tokens"] = await _count(database, EmailVerification.id)

        body = json.dumps(
            {"email": "alice@asu.edu", "password": DEFAULT_PASSWORD, "firstName": "Alice", "lastName": "Anders"}
        ).encode()
        status, payload = await call_app(
            app,
            "POST",
            "/api/register",
            body,
            headers=[(b"content-type", b"application/json")],
            on_final_body=snapshot,
        )

        assert status == 200
        assert payload["verificationCode"]
        assert seen == {"users": 1, "tokens": 1}

    @pytest.mark.asyncio
    async def test_created_listing_exists_when_response_sent(self, app, database, client, signup):
        await signup(client, "seller@asu.edu")
        cookie = "; ".join(f"{name}={value}" for name, value in client.cookies.items())
        seen = {}

        async def snapshot():
            seen["listings"] = await _count(database, Listing.id)

        form = b"title=Desk&description=Oak&category=Furniture&price=50"
        status, payload = await call_app(
            app,
            "POST",
            "/api/listings",
            form,
            headers=[
                (b"content-type", b"application/x-www-form-urlencoded"),
                (b"cookie", cookie.encode()),
            ],
            on_final_body=snapshot,
        )

        assert status == 200
        assert payload["listingId"]
        assert seen == {"listings": 1}

    @pytest.mark.asyncio
    async def test_verification_right_after_register_succeeds(self, client):
        registered = await client.post(
            "/api/register",
            json={"email": "alice@asu.edu", "password": DEFAULT_PASSWORD, "firstName": "A", "lastName": "B"},
        )
        code = registered.json()["verificationCode"]
        verified = await client.post("/api/verify-email", json={"email": "alice@asu.edu", "verificationCode": code})
        assert verified.status_code == 200


class FailingCommitDatabase:
    """Session scope whose commit fails once the handler is done."""

    @asynccontextmanager
    async def session_scope(self):
        yield MagicMock()
        raise OperationalError("COMMIT", {}, Exception("database is locked"))


@pytest.mark.asyncio
async def test_failed_commit_becomes_database_error():
    dependency = get_db_session(FailingCommitDatabase())
    await dependency.__anext__()
    with pytest.raises(DatabaseError, match="Failed to save changes"):
        await dependency.__anext__()
