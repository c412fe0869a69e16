"""
Crowslist Backend — Profile Routes
====================================

GET and PUT /api/profile, always for the session's own user.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crowslist.deps import get_db_session, require_session
from crowslist.schemas.common import SuccessResponse
from crowslist.schemas.profile import ProfileResponse, ProfileUpdate
from crowslist.services.profile_service import profile_service
from crowslist.services.session_store import Session

router = APIRouter(prefix="/api", tags=["Profile"])


@router.get("/profile", response_model=ProfileResponse, summary="The caller's profile")
async def get_profile(
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db_session, scope="function"),
) -> ProfileResponse:
    return await profile_service.get(db, session.user_id)


@router.put(
    "/profile",
    response_model=SuccessResponse,
    summary="Replace the caller's profile (omitted fields are cleared)",
)
async def update_profile(
    payload: ProfileUpdate,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db_session, scope="function"),
) -> SuccessResponse:
    await profile_service.update(db, session.user_id, payload)
    return SuccessResponse(message="Profile updated successfully")
