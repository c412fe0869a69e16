"""
Crowslist Backend — Listing Schemas
=====================================

What:  Request bodies for editing listings and the row-shaped listing payloads.

Creation is multipart (fields + image files) and is read with FastAPI's
Form/File parameters in the route, so there is no create model here.

Response rows keep the column names (user_id, created_at, ...) and add:
    images        list of attachment references, decoded from the JSON column
    first_name,   owner display fields, on public feed rows only
    last_name,
    email
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from crowslist.schemas.common import CamelModel, FormModel


class ListingUpdate(FormModel):
    """PUT /api/listings/{id}: every editable field is overwritten."""
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    category: str
    price: Optional[Decimal] = None


class StatusUpdate(FormModel):
    """PUT /api/listings/{id}/status"""
    status: str


class ListingResponse(BaseModel):
    id: int
    user_id: int
    title: str
    description: str
    category: str
    # float so the JSON carries a number, not pydantic's Decimal string
    price: Optional[float] = None
    status: str
    images: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class PublicListingResponse(ListingResponse):
    first_name: str
    last_name: str
    email: str


class ListingCreatedResponse(CamelModel):
    success: bool = True
    listing_id: int
    message: str = "Listing created successfully"
