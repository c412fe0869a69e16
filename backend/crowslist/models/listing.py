"""
Crowslist Backend — Listing Model
===================================

What:  ORM model for the `listings` table: a post owned by exactly one user.
Who:   Written and queried by ListingService.

Table Design Rationale:
    - user_id: owner, set at creation and never updated. Every mutating query
      filters on (id, user_id) together.
    - category / status: short strings checked against the enums below in
      the service layer, so both backends share one plain-text schema.
    - price: NUMERIC(10,2), NULL when the poster left it blank ("free" and
      "ask me" are different from 0).
    - images: JSON array of attachment references (stored filenames), in
      upload order. Kept as TEXT so SQLite and PostgreSQL agree.

Indexes:
    (status, created_at)  the public feed: active listings, newest first
    user_id               "my listings"
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from crowslist.database import Base
from crowslist.models.types import utcnow


class ListingCategory(str, Enum):
    JOB = "Job"
    BOOKS = "Books"
    FURNITURE = "Furniture"
    TECHNOLOGY = "Technology"
    SERVICES = "Services"
    MISCELLANEOUS = "Miscellaneous"

    @classmethod
    def values(cls):
        return [member.value for member in cls]


class ListingStatus(str, Enum):
    ACTIVE = "active"
    SOLD = "sold"
    INACTIVE = "inactive"

    @classmethod
    def values(cls):
        return [member.value for member in cls]


class Listing(Base):
    """
    A marketplace post.

    Lifecycle:
        1. Created active by its owner (with 0-5 image references)
        2. Fields edited and/or status moved between active/sold/inactive,
           only by the owner
        3. Deleted by the owner
    Only active listings appear in the public feed.
    """

    __tablename__ = "listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)

    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ListingStatus.ACTIVE.value,
        server_default=text("'active'"),
    )

    # JSON text, e.g. '["3f2a...c1.jpg", "9b7e...04.png"]'
    images: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    __table_args__ = (
        Index("idx_listings_status_created_at", "status", "created_at"),
        Index("idx_listings_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Listing(id={self.id}, user_id={self.user_id}, "
            f"category='{self.category}', status='{self.status}')>"
        )
