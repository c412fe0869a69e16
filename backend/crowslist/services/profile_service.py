"""
Crowslist Backend — Profile Service
=====================================

What:  Read and replace the caller's own profile.
How:   The user id always comes from the session, never from the request,
       so a caller can only ever touch their own row.

Update semantics are whole-record replace: every profile column is written
on each PUT. A field the client leaves out becomes NULL (or False for the
notification / message flags) instead of keeping its old value.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crowslist.exceptions import DatabaseError, NotFoundError
from crowslist.models import User
from crowslist.schemas.profile import ProfileResponse, ProfileUpdate

logger = logging.getLogger(__name__)


class ProfileService:

    async def get(self, db: AsyncSession, user_id: int) -> ProfileResponse:
        try:
            result = await db.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Error fetching profile %d: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(message="Failed to fetch profile", context={"user_id": user_id})

        if user is None:
            # A live session pointing at a missing user
            logger.error("Session references missing user %d", user_id)
            raise NotFoundError(resource="user", resource_id=str(user_id), message="User not found")

        return ProfileResponse.model_validate(user)

    async def update(self, db: AsyncSession, user_id: int, fields: ProfileUpdate) -> None:
        values = fields.model_dump(by_alias=False)
        values["updated_at"] = datetime.now(timezone.utc)
        try:
            result = await db.execute(update(User).where(User.id == user_id).values(**values))
        except SQLAlchemyError as e:
            logger.error("Error updating profile %d: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(message="Failed to update profile", context={"user_id": user_id})

        if result.rowcount == 0:
            logger.error("Session references missing user %d", user_id)
            raise NotFoundError(resource="user", resource_id=str(user_id), message="User not found")
        logger.info("Profile %d updated", user_id)


profile_service = ProfileService()
