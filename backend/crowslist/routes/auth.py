"""
Crowslist Backend — Authentication Routes
===========================================

What:  Register, login, logout, email verification, and the auth check.
How:   Thin handlers over AuthService. The only HTTP concern handled here is
       the session cookie: set when a session is issued, cleared on logout.

Session cookie:
    <settings.session_cookie_name>=<opaque token>; HttpOnly; SameSite=Lax;
    Max-Age=<session TTL>; Path=/   (+ Secure when configured)

    The token is the only thing the browser holds; user id and email stay
    in the server-side SessionStore.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from crowslist.config import settings
from crowslist.deps import get_db_session, get_optional_session, get_session_store, get_session_token
from crowslist.schemas.auth import (
    AuthCheckResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    ResendVerificationRequest,
    UserSummary,
    VerifyEmailRequest,
)
from crowslist.schemas.common import ErrorResponse, SuccessResponse
from crowslist.services.auth_service import auth_service
from crowslist.services.session_store import Session, SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])

REGISTERED_PENDING_MESSAGE = "Registration successful. Please check your email for verification."
REGISTERED_ACTIVE_MESSAGE = "Registration successful"
RESEND_MESSAGE = (
    "If an unverified account exists for this email, a new verification code has been sent."
)


def set_session_cookie(response: Response, session: Session) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session.token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
        path="/",
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    response_model_exclude_none=True,
    responses={400: {"description": "Non-institutional or duplicate email", "model": ErrorResponse}},
    summary="Create an account",
)
async def register(
    payload: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session, scope="function"),
    store: SessionStore = Depends(get_session_store),
) -> RegisterResponse:
    result = await auth_service.register(db, store, payload)

    if result.session is not None:
        set_session_cookie(response, result.session)
        return RegisterResponse(
            message=REGISTERED_ACTIVE_MESSAGE,
            user=UserSummary(
                id=result.user.id,
                email=result.user.email,
                first_name=result.user.first_name,
                last_name=result.user.last_name,
            ),
        )

    return RegisterResponse(
        message=REGISTERED_PENDING_MESSAGE,
        verification_code=result.verification_code if settings.expose_verification_code else None,
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={400: {"description": "Invalid credentials or unverified email", "model": ErrorResponse}},
    summary="Log in with email and password",
)
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session, scope="function"),
    store: SessionStore = Depends(get_session_store),
) -> LoginResponse:
    result = await auth_service.login(db, store, payload.email, payload.password)
    set_session_cookie(response, result.session)
    return LoginResponse(
        message="Login successful",
        user=UserSummary(
            id=result.user.id,
            email=result.user.email,
            first_name=result.user.first_name,
            last_name=result.user.last_name,
        ),
    )


@router.post("/logout", response_model=SuccessResponse, summary="End the current session")
async def logout(
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    store: SessionStore = Depends(get_session_store),
) -> SuccessResponse:
    auth_service.logout(store, token)
    clear_session_cookie(response)
    return SuccessResponse(message="Logged out successfully")


@router.post(
    "/verify-email",
    response_model=LoginResponse,
    response_model_exclude_none=True,
    responses={400: {"description": "Invalid verification code", "model": ErrorResponse}},
    summary="Verify an email address and log in",
)
async def verify_email(
    payload: VerifyEmailRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session, scope="function"),
    store: SessionStore = Depends(get_session_store),
) -> LoginResponse:
    result = await auth_service.verify_email(db, store, payload.email, payload.verification_code)
    set_session_cookie(response, result.session)
    return LoginResponse(
        message="Email verified successfully",
        user=UserSummary(id=result.user_id, email=result.email),
    )


@router.post(
    "/verify-email/resend",
    response_model=RegisterResponse,
    response_model_exclude_none=True,
    summary="Issue a new verification code",
)
async def resend_verification(
    payload: ResendVerificationRequest,
    db: AsyncSession = Depends(get_db_session, scope="function"),
) -> RegisterResponse:
    code = await auth_service.resend_verification(db, payload.email)
    return RegisterResponse(
        message=RESEND_MESSAGE,
        verification_code=code if settings.expose_verification_code else None,
    )


@router.get(
    "/auth/check",
    response_model=AuthCheckResponse,
    response_model_exclude_none=True,
    summary="Report whether the caller has a live session",
)
async def check_auth(session: Optional[Session] = Depends(get_optional_session)) -> AuthCheckResponse:
    return AuthCheckResponse(**auth_service.check_auth(session))
