"""
Crowslist Backend — Listing Directory Service
===============================================

What:  Create, read, update, delete, and filtered search over listings.
Why:   Ownership and visibility rules live in one place rather than being
       repeated in every route.
How:   SQLAlchemy Core/ORM statements against the request's AsyncSession.
Who:   Called by routes/listings.py.

Ownership model:
    Every mutation is ONE statement whose WHERE clause carries both the
    listing id and the caller's user id:

        UPDATE listings SET ... WHERE id = :id AND user_id = :owner
        DELETE FROM listings     WHERE id = :id AND user_id = :owner

    Zero affected rows means "no such listing" or "not yours"; both raise
    the same NotFoundError. There is no separate ownership SELECT, so a
    concurrent delete cannot slip in between a check and a write.

Public feed query (GET /api/listings):
    SELECT l.*, u.first_name, u.last_name, u.email
      FROM listings l JOIN users u ON l.user_id = u.id
     WHERE l.status = 'active'
       [AND l.category = :category]
       [AND (l.title ILIKE :term OR l.description ILIKE :term)]
     ORDER BY <sort>, l.id

    Category and search combine with AND. The search term is bound as a
    parameter with LIKE wildcards escaped, so "%" and "_" match literally.

Sorting:
    date_desc (default), date_asc, price_asc, price_desc. Listings without
    a price sort LAST for both price orders on both backends (SQLite and
    PostgreSQL disagree on the default null position, so it is spelled out).
    Ties are broken by id in the same direction as the primary key.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crowslist.exceptions import DatabaseError, NotFoundError, ValidationError
from crowslist.models import Listing, ListingCategory, ListingStatus, User

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Listing not found or unauthorized"

SORT_KEYS = ("date_desc", "date_asc", "price_asc", "price_desc")
DEFAULT_SORT = "date_desc"

MAX_PRICE = Decimal("99999999.99")


# ── Input normalization ───────────────────────────────────────────────────

def validate_category(category: Optional[str]) -> str:
    if category not in ListingCategory.values():
        raise ValidationError(
            message="Invalid category",
            field="category",
            context={"allowed": ListingCategory.values()},
        )
    return category


def validate_status(status: Optional[str]) -> str:
    if status not in ListingStatus.values():
        raise ValidationError(
            message="Invalid status",
            field="status",
            context={"allowed": ListingStatus.values()},
        )
    return status


def parse_price(value: Any) -> Optional[Decimal]:
    """
    Absent or blank price → None (stored as NULL, never 0).

    Raises ValidationError for anything that is not a non-negative amount
    that fits NUMERIC(10,2).
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(message="Price must be a number", field="price")
    if not price.is_finite() or price < 0:
        raise ValidationError(message="Price must be a non-negative number", field="price")
    if price > MAX_PRICE:
        raise ValidationError(message="Price is too large", field="price")
    return price.quantize(Decimal("0.01"))


def clean_text(title: Optional[str], description: Optional[str]) -> Tuple[str, str]:
    """Trimmed title and description; either one blank raises ValidationError."""
    title = (title or "").strip()
    description = (description or "").strip()
    if not title:
        raise ValidationError(message="Title is required", field="title")
    if not description:
        raise ValidationError(message="Description is required", field="description")
    return title, description


def decode_images(raw: Optional[str]) -> List[str]:
    """Stored JSON → list of references. Anything unreadable becomes []."""
    if not raw:
        return []
    try:
        images = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed images value: %.60r", raw)
        return []
    if not isinstance(images, list):
        return []
    return [str(ref) for ref in images]


def encode_images(images: Optional[Sequence[str]]) -> str:
    return json.dumps(list(images or []))


def _listing_row(listing: Listing) -> Dict[str, Any]:
    return {
        "id": listing.id,
        "user_id": listing.user_id,
        "title": listing.title,
        "description": listing.description,
        "category": listing.category,
        "price": float(listing.price) if listing.price is not None else None,
        "status": listing.status,
        "images": decode_images(listing.images),
        "created_at": listing.created_at,
        "updated_at": listing.updated_at,
    }


def _order_by(sort: Optional[str]):
    if sort == "price_asc":
        return (Listing.price.asc().nulls_last(), Listing.id.asc())
    if sort == "price_desc":
        return (Listing.price.desc().nulls_last(), Listing.id.desc())
    if sort == "date_asc":
        return (Listing.created_at.asc(), Listing.id.asc())
    return (Listing.created_at.desc(), Listing.id.desc())


class ListingService:
    """
    Business logic for listings.

    Every method wraps unexpected SQLAlchemy errors in DatabaseError; our
    own exceptions propagate unchanged.
    """

    async def create(
        self,
        db: AsyncSession,
        owner_id: int,
        title: str,
        description: str,
        category: str,
        price: Any = None,
        images: Optional[Sequence[str]] = None,
    ) -> int:
        """
        Insert an active listing owned by `owner_id`.

        Returns:
            The new listing id.

        Raises:
            ValidationError: unknown category, bad price, blank title/description
        """
        validate_category(category)
        amount = parse_price(price)
        title, description = clean_text(title, description)

        listing = Listing(
            user_id=owner_id,
            title=title,
            description=description,
            category=category,
            price=amount,
            status=ListingStatus.ACTIVE.value,
            images=encode_images(images),
        )
        try:
            db.add(listing)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Error creating listing: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Failed to create listing",
                context={"error_type": type(e).__name__},
            )

        logger.info("Listing %d created by user %d (%d images)", listing.id, owner_id, len(images or []))
        return listing.id

    async def list_active(
        self,
        db: AsyncSession,
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Public feed: active listings with owner display fields."""
        query = (
            select(Listing, User.first_name, User.last_name, User.email)
            .join(User, Listing.user_id == User.id)
            .where(Listing.status == ListingStatus.ACTIVE.value)
        )
        if category:
            query = query.where(Listing.category == category)
        if search:
            query = query.where(
                or_(
                    Listing.title.icontains(search, autoescape=True),
                    Listing.description.icontains(search, autoescape=True),
                )
            )
        query = query.order_by(*_order_by(sort))

        try:
            result = await db.execute(query)
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Error fetching listings: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Failed to fetch listings",
                context={"error_type": type(e).__name__},
            )

        listings = []
        for listing, first_name, last_name, email in rows:
            row = _listing_row(listing)
            row.update(first_name=first_name, last_name=last_name, email=email)
            listings.append(row)
        return listings

    async def get_active(self, db: AsyncSession, listing_id: int) -> Dict[str, Any]:
        """One active listing with owner display fields, else NotFoundError."""
        try:
            result = await db.execute(
                select(Listing, User.first_name, User.last_name, User.email)
                .join(User, Listing.user_id == User.id)
                .where(
                    Listing.id == listing_id,
                    Listing.status == ListingStatus.ACTIVE.value,
                )
            )
            row = result.first()
        except SQLAlchemyError as e:
            logger.error("Error fetching listing %s: %s", listing_id, str(e), exc_info=True)
            raise DatabaseError(message="Failed to fetch listing", context={"listing_id": listing_id})

        if row is None:
            raise NotFoundError(resource="listing", resource_id=str(listing_id), message="Listing not found")

        listing, first_name, last_name, email = row
        data = _listing_row(listing)
        data.update(first_name=first_name, last_name=last_name, email=email)
        return data

    async def list_mine(self, db: AsyncSession, owner_id: int) -> List[Dict[str, Any]]:
        """All of the owner's listings in every status, newest first."""
        try:
            result = await db.execute(
                select(Listing)
                .where(Listing.user_id == owner_id)
                .order_by(*_order_by(DEFAULT_SORT))
            )
            listings = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Error fetching listings of user %d: %s", owner_id, str(e), exc_info=True)
            raise DatabaseError(message="Failed to fetch listings", context={"owner_id": owner_id})

        return [_listing_row(listing) for listing in listings]

    async def update(
        self,
        db: AsyncSession,
        owner_id: int,
        listing_id: int,
        title: str,
        description: str,
        category: str,
        price: Any = None,
    ) -> None:
        """Overwrite title, description, category and price of an owned listing."""
        validate_category(category)
        title, description = clean_text(title, description)
        values = {
            "title": title,
            "description": description,
            "category": category,
            "price": parse_price(price),
            "updated_at": datetime.now(timezone.utc),
        }
        await self._owned_write(
            db,
            update(Listing)
            .where(Listing.id == listing_id, Listing.user_id == owner_id)
            .values(**values),
            action="update",
            listing_id=listing_id,
        )
        logger.info("Listing %d updated by owner", listing_id)

    async def set_status(self, db: AsyncSession, owner_id: int, listing_id: int, status: str) -> None:
        validate_status(status)
        await self._owned_write(
            db,
            update(Listing)
            .where(Listing.id == listing_id, Listing.user_id == owner_id)
            .values(status=status, updated_at=datetime.now(timezone.utc)),
            action="change the status of",
            listing_id=listing_id,
        )
        logger.info("Listing %d status set to %s", listing_id, status)

    async def delete(self, db: AsyncSession, owner_id: int, listing_id: int) -> None:
        await self._owned_write(
            db,
            delete(Listing).where(Listing.id == listing_id, Listing.user_id == owner_id),
            action="delete",
            listing_id=listing_id,
        )
        logger.info("Listing %d deleted by owner", listing_id)

    async def _owned_write(self, db: AsyncSession, statement, action: str, listing_id: int) -> None:
        """Run an ownership-scoped UPDATE/DELETE; zero rows → NotFoundError."""
        try:
            result = await db.execute(statement)
        except SQLAlchemyError as e:
            logger.error("Listing %s failed for %d: %s", action, listing_id, str(e), exc_info=True)
            raise DatabaseError(
                message=f"Failed to {action} listing",
                context={"listing_id": listing_id},
            )

        if result.rowcount == 0:
            raise NotFoundError(
                resource="listing",
                resource_id=str(listing_id),
                message=NOT_FOUND_MESSAGE,
            )


listing_service = ListingService()
