"""
Pydantic schemas for Payout endpoints.

Amounts are integer minor units.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class PayoutQueryResponse(BaseModel):
    """One message in a payout's query thread."""
    id: uuid.UUID
    sender: str
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}


class PayoutResponse(BaseModel):
    """Public representation of a payout, with its query thread."""
    id: uuid.UUID
    seller_id: uuid.UUID
    transaction_id: uuid.UUID
    amount_cents: int
    status: str
    payment_reference: str | None
    admin_note: str | None
    admin_proof_url: str | None
    processed_at: datetime | None
    created_at: datetime
    queries: list[PayoutQueryResponse] = []

    model_config = {"from_attributes": True}


class PayoutProcessRequest(BaseModel):
    """Request body for PATCH /payouts/{id}/process."""
    action: Literal["mark_paid", "reject"]
    payment_reference: str | None = Field(None, max_length=255)
    admin_note: str | None = Field(None, max_length=500)
    admin_proof_url: str | None = Field(None, max_length=500)


class BulkPayoutRequest(BaseModel):
    """Request body for POST /payouts/bulk-process."""
    seller_id: uuid.UUID
    payment_reference: str | None = Field(None, max_length=255)
    admin_note: str | None = Field(None, max_length=500)


class BulkPayoutResponse(BaseModel):
    seller_id: uuid.UUID
    paid_count: int


class PayoutQueryRequest(BaseModel):
    """Request body for POST /payouts/{id}/queries."""
    message: str = Field(min_length=1, max_length=2000)
