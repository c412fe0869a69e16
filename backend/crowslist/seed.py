"""
Crowslist Backend — Sample Data
=================================

What:  Two demo accounts and six demo listings for local development.
How:   Users go in with INSERT ... ON CONFLICT DO NOTHING on the unique email,
       each gets a VERIFIED token if it has none, and an owner's listings are
       inserted only while that owner has no listings at all. Running the
       seed twice changes nothing.

Usage:
    python -m crowslist.seed          # against DATABASE_URL
    SEED_SAMPLE_DATA=true uvicorn ... # at API startup

Demo accounts (password "password123"):
    john.doe@asu.edu, jane.smith@asu.edu
"""

import asyncio
import logging
from decimal import Decimal

from sqlalchemy import func, insert, select

from crowslist.config import settings
from crowslist.database import Database, create_database
from crowslist.models import EmailVerification, Listing, User
from crowslist.services.auth_service import hash_password
from crowslist.services.verification_service import generate_verification_code

logger = logging.getLogger(__name__)

SAMPLE_PASSWORD = "password123"

SAMPLE_USERS = [
    {
        "email": "john.doe@asu.edu",
        "first_name": "John",
        "last_name": "Doe",
        "phone": "(480) 555-0123",
        "major": "Computer Science",
        "graduation_year": 2025,
        "campus": "Tempe",
        "bio": "Computer Science student passionate about technology and innovation.",
    },
    {
        "email": "jane.smith@asu.edu",
        "first_name": "Jane",
        "last_name": "Smith",
        "phone": "(480) 555-0124",
        "major": "Business",
        "graduation_year": 2024,
        "campus": "Tempe",
        "bio": "Business student looking for internship opportunities.",
    },
]

# Keyed by owner email
SAMPLE_LISTINGS = {
    "john.doe@asu.edu": [
        (
            "Textbook: Calculus Early Transcendentals",
            "Barely used textbook for MAT 270. Great condition, no highlighting or writing.",
            "Books",
            "120.00",
        ),
        (
            'MacBook Pro 13" - Excellent Condition',
            "2019 MacBook Pro, barely used. Perfect for students. Includes original charger and box.",
            "Technology",
            "800.00",
        ),
        (
            "Office Chair - Herman Miller",
            "Ergonomic office chair in excellent condition. Perfect for long study sessions.",
            "Furniture",
            "150.00",
        ),
    ],
    "jane.smith@asu.edu": [
        (
            "Roommate Needed - Vista del Sol",
            "Looking for a roommate to share a 2BR apartment near campus. $650/month including utilities.",
            "Miscellaneous",
            "650.00",
        ),
        (
            "Tutor Needed for Computer Science",
            "Need help with CSE 110 assignments. Flexible schedule, good pay.",
            "Services",
            "25.00",
        ),
        (
            "Part-time Research Assistant",
            "Looking for undergraduate research assistant for psychology study. $15/hour.",
            "Job",
            "15.00",
        ),
    ],
}


async def seed_sample_data(database: Database) -> None:
    hashed = await hash_password(SAMPLE_PASSWORD)
    await database.execute(
        database.insert_ignore(User.__table__),
        [dict(user, password=hashed) for user in SAMPLE_USERS],
    )

    emails = [user["email"] for user in SAMPLE_USERS]
    rows = await database.execute(select(User.id, User.email).where(User.email.in_(emails)))
    user_ids = {row["email"]: row["id"] for row in rows}

    for email, user_id in user_ids.items():
        verified = await database.execute(
            select(EmailVerification.id).where(
                EmailVerification.user_id == user_id,
                EmailVerification.verified == True,  # noqa: E712
            )
        )
        if not verified:
            await database.execute(
                insert(EmailVerification.__table__),
                {"user_id": user_id, "verification_code": generate_verification_code(), "verified": True},
            )

        counted = await database.execute(
            select(func.count(Listing.id).label("n")).where(Listing.user_id == user_id)
        )
        if counted[0]["n"]:
            continue
        await database.execute(
            insert(Listing.__table__),
            [
                {
                    "user_id": user_id,
                    "title": title,
                    "description": description,
                    "category": category,
                    "price": Decimal(price),
                    "status": "active",
                    "images": "[]",
                }
                for title, description, category, price in SAMPLE_LISTINGS[email]
            ],
        )
        logger.info("Seeded %d listings for %s", len(SAMPLE_LISTINGS[email]), email)

    logger.info("Sample data ready: %s (password: %s)", ", ".join(emails), SAMPLE_PASSWORD)


async def _main() -> None:
    from crowslist.main import setup_logging

    setup_logging()
    database = create_database(settings.database_url)
    try:
        await database.create_schema_if_absent()
        await seed_sample_data(database)
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(_main())
