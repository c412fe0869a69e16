"""
Crowslist Backend — User Model
================================

What:  ORM model for the `users` table: identity, credential and profile.
Who:   Written by AuthService (registration) and ProfileService (profile
       update); read by listing queries for owner display fields.

Table Design:
    - Integer autoincrement primary key (SERIAL on PostgreSQL)
    - email: UNIQUE. The constraint is authoritative for duplicate detection;
      the service-level lookup before insert only produces a nicer error.
    - password: bcrypt hash string, never returned by any endpoint
    - notifications / messages: opt-in flags, bool in Python, 0/1 in storage
    - Users are never deleted.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from crowslist.database import Base
from crowslist.models.types import IntFlag, utcnow


class User(Base):
    """A registered campus account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # bcrypt hash ("$2b$10$...")
    password: Mapped[str] = mapped_column(Text, nullable=False)

    # ── Profile ───────────────────────────────────────────────────────────
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    major: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    graduation_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    campus: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # 'email', 'phone', ... free text chosen by the frontend
    preferred_contact: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        default="email",
        server_default=text("'email'"),
    )
    notifications: Mapped[bool] = mapped_column(
        IntFlag, nullable=False, default=True, server_default=text("1")
    )
    messages: Mapped[bool] = mapped_column(
        IntFlag, nullable=False, default=True, server_default=text("1")
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    # Python-side defaults give microsecond resolution on SQLite too, which
    # keeps "newest first" ordering stable for rows created in the same second.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
