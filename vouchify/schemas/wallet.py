"""
Pydantic schemas for Wallet endpoints.

All amounts are integer minor units. Entry amounts are always positive;
the direction comes from `type` ("credit" or "debit").
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class WalletEntryResponse(BaseModel):
    id: uuid.UUID
    type: str
    source: str
    amount_cents: int
    description: str
    reference: str | None
    voucher_id: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class WalletResponse(BaseModel):
    """Wallet balance plus its most recent entries."""
    id: uuid.UUID
    balance_cents: int
    currency: str
    entries: list[WalletEntryResponse] = []


class TopUpRequest(BaseModel):
    """Request body for PUT /admin/users/{user_id}/wallet/credit."""
    amount_cents: int = Field(gt=0, le=10_000_000, description="Amount in minor units")
    reference: str | None = Field(None, max_length=255)
