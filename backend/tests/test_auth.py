"""
Crowslist Backend — Authentication & Verification API Tests
=============================================================

What:  register → verify-email → login → logout through the HTTP API, plus
       the verification state machine's failure cases and resend.

Test Strategy:
    ✅ Institutional-domain rule and duplicate email (400)
    ✅ Login gated on a VERIFIED token; generic credential errors
    ✅ Consumed / unknown / mismatched tokens fail identically
    ✅ Session cookie issued by verify and login, destroyed by logout
    ✅ Resend issues a working code and answers uniformly
    ✅ Simplified mode: register starts a session, no verification gate
    ✅ Expired sessions answer 401; rolling sessions are extended by use
"""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from crowslist.config import settings
from crowslist.main import create_app
from crowslist.models import EmailVerification, User
from crowslist.services.session_store import InMemorySessionStore
from tests.conftest import DEFAULT_PASSWORD, FakeClock


def _register_body(email="alice@asu.edu", password=DEFAULT_PASSWORD, **extra):
    body = {"email": email, "password": password, "firstName": "Alice", "lastName": "Anders"}
    body.update(extra)
    return body


class TestRegister:

    @pytest.mark.asyncio
    async def test_register_returns_code_and_no_session(self, client):
        response = await client.post("/api/register", json=_register_body())
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Registration successful. Please check your email for verification."
        assert len(body["verificationCode"]) == 64
        int(body["verificationCode"], 16)

        check = await client.get("/api/auth/check")
        assert check.json() == {"authenticated": False}

    @pytest.mark.asyncio
    async def test_non_institutional_email_rejected(self, client, database):
        response = await client.post("/api/register", json=_register_body(email="alice@gmail.com"))
        assert response.status_code == 400
        assert response.json()["message"] == "Only ASU email addresses (@asu.edu) are allowed"
        assert await database.execute(select(User.id)) == []

    @pytest.mark.asyncio
    async def test_lookalike_domain_rejected(self, client):
        response = await client.post("/api/register", json=_register_body(email="alice@notasu.edu"))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_duplicate_email_conflict(self, client, database):
        first = await client.post("/api/register", json=_register_body())
        second = await client.post("/api/register", json=_register_body(firstName="Other"))

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["error"] == "conflict"
        assert second.json()["message"] == "User already exists with this email"

        rows = await database.execute(select(func.count(User.id).label("n")))
        assert rows[0]["n"] == 1

    @pytest.mark.asyncio
    async def test_duplicate_differs_only_in_case(self, client):
        await client.post("/api/register", json=_register_body())
        again = await client.post("/api/register", json=_register_body(email="Alice@ASU.edu"))
        assert again.status_code == 400
        assert again.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_user_and_token_written_together(self, client, database):
        await client.post("/api/register", json=_register_body())
        users = await database.execute(select(User.id))
        tokens = await database.execute(
            select(EmailVerification.user_id, EmailVerification.verified)
        )
        assert tokens == [{"user_id": users[0]["id"], "verified": False}]

    @pytest.mark.asyncio
    async def test_password_is_hashed(self, client, database):
        await client.post("/api/register", json=_register_body())
        rows = await database.execute(select(User.password))
        stored = rows[0]["password"]
        assert stored != DEFAULT_PASSWORD
        assert stored.startswith("$2b$10$")

    @pytest.mark.asyncio
    async def test_optional_profile_fields_stored(self, client, database):
        await client.post(
            "/api/register",
            json=_register_body(phone="555-0100", major="Physics", graduationYear=2027, campus=""),
        )
        rows = await database.execute(select(User.phone, User.major, User.graduation_year, User.campus))
        assert rows == [{"phone": "555-0100", "major": "Physics", "graduation_year": 2027, "campus": None}]

    @pytest.mark.asyncio
    async def test_missing_required_field_is_400(self, client):
        response = await client.post("/api/register", json={"email": "alice@asu.edu", "password": DEFAULT_PASSWORD})
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_code_hidden_when_not_exposed(self, client, monkeypatch):
        monkeypatch.setattr(settings, "expose_verification_code", False)
        response = await client.post("/api/register", json=_register_body())
        assert response.status_code == 200
        assert "verificationCode" not in response.json()


class TestVerifyEmail:

    @pytest.mark.asyncio
    async def test_verify_starts_session(self, client):
        code = (await client.post("/api/register", json=_register_body())).json()["verificationCode"]
        response = await client.post(
            "/api/verify-email", json={"email": "alice@asu.edu", "verificationCode": code}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Email verified successfully"
        assert body["user"]["email"] == "alice@asu.edu"
        assert settings.session_cookie_name in response.cookies

        check = (await client.get("/api/auth/check")).json()
        assert check == {"authenticated": True, "userId": body["user"]["id"], "userEmail": "alice@asu.edu"}

    @pytest.mark.asyncio
    async def test_replayed_token_fails_like_unknown_token(self, client_factory):
        client = client_factory()
        code = (await client.post("/api/register", json=_register_body())).json()["verificationCode"]
        first = await client.post("/api/verify-email", json={"email": "alice@asu.edu", "verificationCode": code})
        assert first.status_code == 200

        replay = await client.post("/api/verify-email", json={"email": "alice@asu.edu", "verificationCode": code})
        unknown = await client.post("/api/verify-email", json={"email": "alice@asu.edu", "verificationCode": "0" * 64})

        assert replay.status_code == unknown.status_code == 400
        assert replay.json()["message"] == unknown.json()["message"] == "Invalid verification code"

    @pytest.mark.asyncio
    async def test_token_bound_to_its_email(self, client):
        code_a = (await client.post("/api/register", json=_register_body())).json()["verificationCode"]
        await client.post("/api/register", json=_register_body(email="bob@asu.edu"))

        response = await client.post("/api/verify-email", json={"email": "bob@asu.edu", "verificationCode": code_a})
        assert response.status_code == 400
        assert (await client.get("/api/auth/check")).json()["authenticated"] is False

    @pytest.mark.asyncio
    async def test_verify_flips_flag_once(self, client, database):
        code = (await client.post("/api/register", json=_register_body())).json()["verificationCode"]
        await client.post("/api/verify-email", json={"email": "alice@asu.edu", "verificationCode": code})
        rows = await database.execute(select(EmailVerification.verified))
        assert rows == [{"verified": True}]


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_before_verification_refused(self, client):
        await client.post("/api/register", json=_register_body())
        response = await client.post("/api/login", json={"email": "alice@asu.edu", "password": DEFAULT_PASSWORD})
        assert response.status_code == 400
        assert response.json()["message"] == "Please verify your email before logging in"
        assert settings.session_cookie_name not in response.cookies

    @pytest.mark.asyncio
    async def test_login_after_verification(self, client_factory, signup):
        await signup(client_factory(), "alice@asu.edu", first_name="Alice", last_name="Anders")

        fresh = client_factory()
        response = await fresh.post("/api/login", json={"email": "alice@asu.edu", "password": DEFAULT_PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["firstName"] == "Alice"
        assert body["user"]["lastName"] == "Anders"
        assert "password" not in body["user"]
        assert (await fresh.get("/api/auth/check")).json()["authenticated"] is True

    @pytest.mark.asyncio
    async def test_login_email_case_insensitive(self, client_factory, signup):
        await signup(client_factory(), "alice@asu.edu")
        response = await client_factory().post(
            "/api/login", json={"email": "  ALICE@asu.edu ", "password": DEFAULT_PASSWORD}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(self, client_factory, signup):
        await signup(client_factory(), "alice@asu.edu")
        client = client_factory()

        wrong = await client.post("/api/login", json={"email": "alice@asu.edu", "password": "wrong-password"})
        unknown = await client.post("/api/login", json={"email": "nobody@asu.edu", "password": DEFAULT_PASSWORD})

        assert wrong.status_code == unknown.status_code == 400
        assert wrong.json()["message"] == unknown.json()["message"] == "Invalid email or password"
        assert wrong.json()["error"] == unknown.json()["error"] == "auth_error"

    @pytest.mark.asyncio
    async def test_unverified_user_with_wrong_password_gets_generic_error(self, client):
        await client.post("/api/register", json=_register_body())
        response = await client.post("/api/login", json={"email": "alice@asu.edu", "password": "wrong-password"})
        assert response.json()["message"] == "Invalid email or password"


class TestLogoutAndCheck:

    @pytest.mark.asyncio
    async def test_logout_destroys_session(self, client, signup, session_store):
        await signup(client, "alice@asu.edu")
        assert len(session_store) == 1

        response = await client.post("/api/logout")
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logged out successfully"}
        assert len(session_store) == 0
        assert (await client.get("/api/auth/check")).json() == {"authenticated": False}

    @pytest.mark.asyncio
    async def test_stolen_token_dead_after_logout(self, client_factory, signup):
        owner = client_factory()
        await signup(owner, "alice@asu.edu")
        token = owner.cookies.get(settings.session_cookie_name)

        await owner.post("/api/logout")

        thief = client_factory()
        thief.cookies.set(settings.session_cookie_name, token)
        assert (await thief.get("/api/profile")).status_code == 401

    @pytest.mark.asyncio
    async def test_logout_without_session_succeeds(self, client):
        response = await client.post("/api/logout")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_forged_cookie_is_unauthenticated(self, client):
        client.cookies.set(settings.session_cookie_name, "forged-token")
        assert (await client.get("/api/auth/check")).json() == {"authenticated": False}


class TestSessionExpiry:

    @pytest_asyncio.fixture
    async def clocked(self, database, file_service):
        """Builder for an app whose session store runs on a FakeClock; returns (client, clock, store)."""

        async def build(rolling=False):
            clock = FakeClock()
            store = InMemorySessionStore(ttl=timedelta(hours=24), rolling=rolling, clock=clock)
            app = create_app(database=database, session_store=store, file_service=file_service)
            client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
            opened.append(client)
            return client, clock, store

        opened = []
        yield build
        for client in opened:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_expired_session_gets_401(self, clocked, signup):
        client, clock, store = await clocked()
        await signup(client, "alice@asu.edu")
        assert (await client.get("/api/listings/my")).status_code == 200

        clock.advance(hours=24, seconds=1)
        response = await client.get("/api/listings/my")

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_required"
        assert (await client.get("/api/auth/check")).json() == {"authenticated": False}
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_session_valid_until_ttl(self, clocked, signup):
        client, clock, _ = await clocked()
        await signup(client, "alice@asu.edu")
        clock.advance(hours=23, minutes=59)
        assert (await client.get("/api/profile")).status_code == 200

    @pytest.mark.asyncio
    async def test_rolling_session_extended_by_use(self, clocked, signup):
        client, clock, _ = await clocked(rolling=True)
        await signup(client, "alice@asu.edu")
        for _ in range(3):
            clock.advance(hours=20)
            assert (await client.get("/api/listings/my")).status_code == 200

        clock.advance(hours=24, seconds=1)
        assert (await client.get("/api/listings/my")).status_code == 401


class TestResendVerification:

    @pytest.mark.asyncio
    async def test_resend_issues_working_code(self, client):
        await client.post("/api/register", json=_register_body())
        resent = await client.post("/api/verify-email/resend", json={"email": "alice@asu.edu"})
        assert resent.status_code == 200
        code = resent.json()["verificationCode"]

        response = await client.post("/api/verify-email", json={"email": "alice@asu.edu", "verificationCode": code})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_resend_answers_unknown_email_the_same(self, client):
        await client.post("/api/register", json=_register_body())
        known = await client.post("/api/verify-email/resend", json={"email": "alice@asu.edu"})
        unknown = await client.post("/api/verify-email/resend", json={"email": "nobody@asu.edu"})

        assert known.status_code == unknown.status_code == 200
        assert known.json()["message"] == unknown.json()["message"]
        assert "verificationCode" not in unknown.json()

    @pytest.mark.asyncio
    async def test_resend_for_verified_account_issues_nothing(self, client, signup, database):
        await signup(client, "alice@asu.edu")
        response = await client.post("/api/verify-email/resend", json={"email": "alice@asu.edu"})
        assert "verificationCode" not in response.json()
        rows = await database.execute(select(EmailVerification.id))
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_orphaned_user_recovers_through_resend(self, client, database):
        # A user row without any verification row
        from sqlalchemy import insert

        await database.execute(
            insert(User.__table__),
            {"email": "orphan@asu.edu", "password": "x", "first_name": "O", "last_name": "P"},
        )
        resent = await client.post("/api/verify-email/resend", json={"email": "orphan@asu.edu"})
        code = resent.json()["verificationCode"]
        verified = await client.post("/api/verify-email", json={"email": "orphan@asu.edu", "verificationCode": code})
        assert verified.status_code == 200


class TestSimplifiedMode:

    @pytest.mark.asyncio
    async def test_register_logs_in_immediately(self, client_factory, monkeypatch):
        monkeypatch.setattr(settings, "require_email_verification", False)
        client = client_factory()

        response = await client.post("/api/register", json=_register_body())
        assert response.status_code == 200
        body = response.json()
        assert "verificationCode" not in body
        assert body["user"]["email"] == "alice@asu.edu"
        assert (await client.get("/api/auth/check")).json()["authenticated"] is True

        login = await client_factory().post(
            "/api/login", json={"email": "alice@asu.edu", "password": DEFAULT_PASSWORD}
        )
        assert login.status_code == 200
