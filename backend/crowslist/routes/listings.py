"""
Crowslist Backend — Listing Routes
====================================

What:  The public feed, a single listing, the caller's own listings, and the
       owner-only create / edit / status / delete operations.
How:   Thin handlers over ListingService. Every mutating route takes the
       owner id from the session (require_session), never from the body.

Route order matters: /listings/my is declared before /listings/{listing_id}
so "my" is never parsed as an id.

Errors:
    400  invalid category / status / price, bad image upload
    401  no live session (owner-only routes)
    404  listing missing OR owned by someone else (one message for both)
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from crowslist.deps import get_db_session, get_file_service, require_session
from crowslist.schemas.common import ErrorResponse, SuccessResponse
from crowslist.schemas.listing import (
    ListingCreatedResponse,
    ListingResponse,
    ListingUpdate,
    PublicListingResponse,
    StatusUpdate,
)
from crowslist.services.file_service import FileService
from crowslist.services.listing_service import listing_service
from crowslist.services.session_store import Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Listings"])

NOT_FOUND_RESPONSE = {404: {"description": "Listing not found or unauthorized", "model": ErrorResponse}}


@router.get(
    "/listings",
    response_model=List[PublicListingResponse],
    summary="Browse active listings",
)
async def list_listings(
    category: Optional[str] = Query(default=None, description="Exact category name"),
    search: Optional[str] = Query(
        default=None,
        description="Case-insensitive substring matched against title OR description",
    ),
    sort: Optional[str] = Query(
        default=None,
        description="price_asc, price_desc, date_asc or date_desc (default, newest first)",
    ),
    db: AsyncSession = Depends(get_db_session, scope="function"),
):
    return await listing_service.list_active(db, category=category, search=search, sort=sort)


@router.get(
    "/listings/my",
    response_model=List[ListingResponse],
    summary="The caller's listings in every status",
)
async def my_listings(
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db_session, scope="function"),
):
    return await listing_service.list_mine(db, session.user_id)


@router.get(
    "/listings/{listing_id}",
    response_model=PublicListingResponse,
    responses={404: {"description": "Listing not found", "model": ErrorResponse}},
    summary="One active listing",
)
async def get_listing(
    listing_id: int,
    db: AsyncSession = Depends(get_db_session, scope="function"),
):
    return await listing_service.get_active(db, listing_id)


@router.post(
    "/listings",
    response_model=ListingCreatedResponse,
    responses={400: {"description": "Invalid category, price or image", "model": ErrorResponse}},
    summary="Create a listing (multipart, up to 5 images)",
)
async def create_listing(
    title: str = Form(default=""),
    description: str = Form(default=""),
    category: str = Form(default=""),
    price: Optional[str] = Form(default=None),
    images: Optional[List[UploadFile]] = File(default=None),
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db_session, scope="function"),
    file_service: FileService = Depends(get_file_service),
) -> ListingCreatedResponse:
    references = await file_service.store_uploads(images)
    try:
        listing_id = await listing_service.create(
            db,
            owner_id=session.user_id,
            title=title,
            description=description,
            category=category,
            price=price,
            images=references,
        )
        # Commit here so a failed commit still removes the stored files
        await db.commit()
    except Exception:
        await file_service.cleanup(references)
        raise
    return ListingCreatedResponse(listing_id=listing_id)


@router.put(
    "/listings/{listing_id}",
    response_model=SuccessResponse,
    responses=NOT_FOUND_RESPONSE,
    summary="Edit an owned listing",
)
async def update_listing(
    listing_id: int,
    payload: ListingUpdate,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db_session, scope="function"),
) -> SuccessResponse:
    await listing_service.update(
        db,
        owner_id=session.user_id,
        listing_id=listing_id,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        price=payload.price,
    )
    return SuccessResponse(message="Listing updated successfully")


@router.put(
    "/listings/{listing_id}/status",
    response_model=SuccessResponse,
    responses=NOT_FOUND_RESPONSE,
    summary="Mark an owned listing active, sold or inactive",
)
async def update_listing_status(
    listing_id: int,
    payload: StatusUpdate,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db_session, scope="function"),
) -> SuccessResponse:
    await listing_service.set_status(db, session.user_id, listing_id, payload.status)
    return SuccessResponse(message="Listing status updated successfully")


@router.delete(
    "/listings/{listing_id}",
    response_model=SuccessResponse,
    responses=NOT_FOUND_RESPONSE,
    summary="Delete an owned listing",
)
async def delete_listing(
    listing_id: int,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db_session, scope="function"),
) -> SuccessResponse:
    await listing_service.delete(db, session.user_id, listing_id)
    return SuccessResponse(message="Listing deleted successfully")
