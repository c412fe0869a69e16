"""
Crowslist Backend — Profile Schemas
=====================================
"""

from typing import Optional

from pydantic import BaseModel, Field

from crowslist.schemas.common import FormModel


class ProfileResponse(BaseModel):
    """GET /api/profile: every user column except the password hash."""
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    major: Optional[str] = None
    graduation_year: Optional[int] = None
    campus: Optional[str] = None
    bio: Optional[str] = None
    preferred_contact: Optional[str] = None
    notifications: bool
    messages: bool

    model_config = {"from_attributes": True}


class ProfileUpdate(FormModel):
    """
    PUT /api/profile

    Whole-record replace: a field left out of the body is written as NULL
    (or False for the two flags), not preserved. Names are required because
    the columns are NOT NULL.
    """
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    major: Optional[str] = Field(default=None, max_length=120)
    graduation_year: Optional[int] = Field(default=None, ge=1900, le=2200)
    campus: Optional[str] = Field(default=None, max_length=120)
    bio: Optional[str] = None
    preferred_contact: Optional[str] = Field(default=None, max_length=50)
    notifications: bool = False
    messages: bool = False
