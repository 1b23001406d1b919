"""Pydantic schemas for voucher reviews."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class ReviewCreateRequest(BaseModel):
    """Request body for POST /vouchers/{voucher_id}/reviews."""
    transaction_id: uuid.UUID = Field(description="The completed purchase being reviewed")
    rating: int = Field(ge=1, le=5)
    comment: str = Field("", max_length=2000)


class ReviewResponse(BaseModel):
    id: uuid.UUID
    voucher_id: uuid.UUID
    transaction_id: uuid.UUID
    reviewer_id: uuid.UUID
    reviewer_display_name: str | None
    rating: int
    comment: str
    created_at: datetime

    model_config = {"from_attributes": True}
