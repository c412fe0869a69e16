"""
Crowslist Backend — Authentication Schemas
============================================

Request bodies for register / login / verify-email and the envelopes sent
back. Field names on the wire are camelCase (see CamelModel).
"""

from typing import Optional

from pydantic import EmailStr, Field

from crowslist.schemas.common import CamelModel, FormModel


class RegisterRequest(FormModel):
    """
    POST /api/register

    The institutional-domain rule is a business rule enforced by AuthService,
    not here, so the client gets the specific "only @asu.edu" message.
    """
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    major: Optional[str] = Field(default=None, max_length=120)
    graduation_year: Optional[int] = Field(default=None, ge=1900, le=2200)
    campus: Optional[str] = Field(default=None, max_length=120)


class LoginRequest(CamelModel):
    # Plain str: a malformed email must fail like any unknown email
    email: str
    password: str


class VerifyEmailRequest(CamelModel):
    email: str
    verification_code: str


class ResendVerificationRequest(CamelModel):
    email: str


class UserSummary(CamelModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class RegisterResponse(CamelModel):
    success: bool = True
    message: str
    # Present only while EXPOSE_VERIFICATION_CODE is on
    verification_code: Optional[str] = None
    # Present only when verification is disabled and a session was started
    user: Optional[UserSummary] = None


class LoginResponse(CamelModel):
    success: bool = True
    message: str
    user: UserSummary


class AuthCheckResponse(CamelModel):
    authenticated: bool
    user_id: Optional[int] = None
    user_email: Optional[str] = None
