"""
Crowslist Backend — ORM Models
================================

Importing this package registers every table on `Base.metadata`, which is
what `Database.create_schema_if_absent()` and Alembic's env.py rely on.

Tables:
    users                 accounts and profile fields
    email_verifications   one-time verification tokens (PENDING → VERIFIED)
    listings              marketplace posts, owned by one user
    messages              listing conversations (stored only, never delivered)
"""

from crowslist.models.user import User
from crowslist.models.email_verification import EmailVerification
from crowslist.models.listing import Listing, ListingCategory, ListingStatus
from crowslist.models.message import Message

__all__ = [
    "User",
    "EmailVerification",
    "Listing",
    "ListingCategory",
    "ListingStatus",
    "Message",
]
