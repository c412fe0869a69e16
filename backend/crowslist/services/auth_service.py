"""
Crowslist Backend — Credential & Session Service
==================================================

What:  Registration, login, logout, auth check, and the verification entry
       points that start a session.
Why:   Keeps every credential rule (institutional domain, unique email,
       password hashing, the verified-email gate, generic failure messages)
       out of the route handlers.
How:   Stateless service. Each call receives the request's AsyncSession and,
       where a session is issued or destroyed, the application's SessionStore.
Who:   Called by routes/auth.py; calls VerificationService.

Deployment modes (settings.require_email_verification):
    True  (default)  register issues a PENDING token and no session; login
                     requires a VERIFIED token to exist for the user.
    False            register issues no token and starts a session at once;
                     login checks the password only.

Registration atomicity:
    The user row and its verification row are flushed in the same session
    and committed together by the request's session scope. The unique index
    on users.email is authoritative: a duplicate that slips past the
    pre-check surfaces as IntegrityError at flush and becomes ConflictError.

Password hashing:
    passlib CryptContext with bcrypt (cost from settings, never below 10).
    bcrypt is CPU-bound for ~50-100ms, so it runs in Starlette's threadpool
    instead of on the event loop.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from crowslist.config import settings
from crowslist.exceptions import (
    AuthError,
    ConflictError,
    DatabaseError,
    InternalError,
    ValidationError,
)
from crowslist.models import User
from crowslist.schemas.auth import RegisterRequest
from crowslist.services.session_store import Session, SessionStore
from crowslist.services.verification_service import VerificationService, verification_service

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

UNVERIFIED_MESSAGE = "Please verify your email before logging in"


async def hash_password(raw: str) -> str:
    return await run_in_threadpool(pwd_context.hash, raw)


async def verify_password(raw: str, hashed: str) -> bool:
    return await run_in_threadpool(pwd_context.verify, raw, hashed)


def normalize_email(email: str) -> str:
    """Emails are stored and looked up trimmed and lowercased."""
    return (email or "").strip().lower()


def is_institutional_email(email: str, domain: Optional[str] = None) -> bool:
    domain = domain or settings.institutional_email_domain
    return normalize_email(email).endswith("@" + domain)


def domain_rejection_message(domain: Optional[str] = None) -> str:
    domain = domain or settings.institutional_email_domain
    label = domain.split(".")[0].upper()
    return f"Only {label} email addresses (@{domain}) are allowed"


@dataclass
class RegistrationResult:
    user: User
    verification_code: Optional[str] = None
    session: Optional[Session] = None


@dataclass
class LoginResult:
    user: User
    session: Session


@dataclass
class VerificationResult:
    user_id: int
    email: str
    session: Session


class AuthService:
    """
    Credential lifecycle for Crowslist accounts.

    Responsibilities:
        - register():      create user (+ PENDING token), or user + session
        - login():         check password and verified gate, issue session
        - logout():        destroy a session
        - check_auth():    read-only view of the caller's session
        - verify_email():  consume a token and issue a session
        - resend_verification(): reissue a token for an unverified account
    """

    def __init__(self, verification: VerificationService = verification_service):
        self.verification = verification

    async def register(
        self,
        db: AsyncSession,
        store: SessionStore,
        payload: RegisterRequest,
    ) -> RegistrationResult:
        """
        Create an account.

        Raises:
            ValidationError: email outside the institutional domain
            ConflictError:   email already registered
            DatabaseError:   unexpected storage failure
        """
        email = normalize_email(payload.email)
        if not is_institutional_email(email):
            raise ValidationError(message=domain_rejection_message(), field="email")

        try:
            existing = await db.execute(select(User.id).where(User.email == email))
            if existing.first() is not None:
                raise ConflictError()

            user = User(
                email=email,
                password=await hash_password(payload.password),
                first_name=payload.first_name,
                last_name=payload.last_name,
                phone=payload.phone,
                major=payload.major,
                graduation_year=payload.graduation_year,
                campus=payload.campus,
            )
            db.add(user)
            try:
                await db.flush()
            except IntegrityError:
                logger.info("Registration lost a race on the unique email index")
                raise ConflictError()

            result = RegistrationResult(user=user)
            if settings.require_email_verification:
                result.verification_code = await self.verification.issue(db, user)
            else:
                result.session = store.create(user.id, user.email)

        except SQLAlchemyError as e:
            logger.error("Registration failed: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Registration failed",
                context={"error_type": type(e).__name__},
            )

        logger.info("User %d registered", user.id)
        return result

    async def login(
        self,
        db: AsyncSession,
        store: SessionStore,
        email: str,
        password: str,
    ) -> LoginResult:
        """
        Check credentials and start a session.

        Unknown email and wrong password raise the same AuthError; a dummy
        hash verification keeps their timing alike.
        """
        try:
            result = await db.execute(select(User).where(User.email == normalize_email(email)))
            user = result.scalar_one_or_none()

            if user is None:
                await run_in_threadpool(pwd_context.dummy_verify)
                raise AuthError()

            if not await verify_password(password or "", user.password):
                raise AuthError()

            if settings.require_email_verification and not await self.verification.is_verified(
                db, user.id
            ):
                raise AuthError(message=UNVERIFIED_MESSAGE)

        except SQLAlchemyError as e:
            logger.error("Login lookup failed: %s", str(e), exc_info=True)
            raise DatabaseError(message="Login failed", context={"error_type": type(e).__name__})

        session = store.create(user.id, user.email)
        return LoginResult(user=user, session=session)

    def logout(self, store: SessionStore, token: Optional[str]) -> None:
        try:
            store.destroy(token)
        except Exception as e:
            logger.error("Session store failed during logout: %s", str(e), exc_info=True)
            raise InternalError(message="Logout failed")

    def check_auth(self, session: Optional[Session]) -> dict:
        if session is None:
            return {"authenticated": False}
        return {
            "authenticated": True,
            "user_id": session.user_id,
            "user_email": session.user_email,
        }

    async def verify_email(
        self,
        db: AsyncSession,
        store: SessionStore,
        email: str,
        code: str,
    ) -> VerificationResult:
        """Consume a PENDING token; verification doubles as login."""
        try:
            user_id, user_email = await self.verification.consume(
                db, normalize_email(email), (code or "").strip()
            )
        except SQLAlchemyError as e:
            logger.error("Verification failed: %s", str(e), exc_info=True)
            raise DatabaseError(message="Verification failed", context={"error_type": type(e).__name__})

        session = store.create(user_id, user_email)
        return VerificationResult(user_id=user_id, email=user_email, session=session)

    async def resend_verification(self, db: AsyncSession, email: str) -> Optional[str]:
        """
        Reissue a token for an unverified account.

        Returns the new code, or None if no account needs one. Callers must
        answer both cases identically so the endpoint cannot be used to discover
        which emails are registered.
        """
        try:
            return await self.verification.reissue(db, normalize_email(email))
        except SQLAlchemyError as e:
            logger.error("Verification reissue failed: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not issue a verification code",
                context={"error_type": type(e).__name__},
            )


auth_service = AuthService()
