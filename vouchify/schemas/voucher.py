"""
Pydantic schemas for Voucher endpoints.

All prices are integer minor units (paise for INR, e.g. ₹499.00 = 49900)
and all percentages are basis points (1500 = 15%).

The scratch code appears in exactly two places: as write-only input on
create/update requests, and in ScratchCodeResponse (schemas/transaction.py)
once a purchase is paid. No voucher response schema declares it.
"""

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


def _future_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if value <= datetime.now(timezone.utc):
        raise ValueError("Expiry date must be in the future")
    return value


class VoucherCreateRequest(BaseModel):
    """Request body for POST /vouchers."""
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1, max_length=50, description="Brand, e.g. amazon, zomato")
    terms: str = ""
    instructions: str = ""
    image_url: str | None = Field(None, max_length=500)
    original_price_cents: int = Field(gt=0, description="Face value in minor units")
    listed_price_cents: int = Field(ge=0, description="Price the buyer pays, in minor units")
    quantity: int = Field(1, ge=1)
    limit_per_user: int = Field(1, ge=1)
    expiry_date: datetime
    scratch_code: str = Field(min_length=1, max_length=128)
    publish: bool = Field(False, description="Submit for verification right away")

    @field_validator("expiry_date")
    @classmethod
    def expiry_in_future(cls, value: datetime) -> datetime:
        return _future_utc(value)

    @model_validator(mode="after")
    def listed_not_above_original(self):
        """A voucher cannot be sold for more than its face value."""
        if self.listed_price_cents > self.original_price_cents:
            raise ValueError("Listed price cannot exceed original price")
        return self


class VoucherUpdateRequest(BaseModel):
    """Request body for PATCH /vouchers/{id}. Only provided fields change."""
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1)
    terms: str | None = None
    instructions: str | None = None
    image_url: str | None = Field(None, max_length=500)
    original_price_cents: int | None = Field(None, gt=0)
    listed_price_cents: int | None = Field(None, ge=0)
    quantity: int | None = Field(None, ge=0)
    limit_per_user: int | None = Field(None, ge=1)
    expiry_date: datetime | None = None
    scratch_code: str | None = Field(None, min_length=1, max_length=128)

    @field_validator("expiry_date")
    @classmethod
    def expiry_in_future(cls, value: datetime | None) -> datetime | None:
        return None if value is None else _future_utc(value)

    @model_validator(mode="after")
    def listed_not_above_original(self):
        if (
            self.listed_price_cents is not None
            and self.original_price_cents is not None
            and self.listed_price_cents > self.original_price_cents
        ):
            raise ValueError("Listed price cannot exceed original price")
        return self


class VoucherResponse(BaseModel):
    """Public representation of a voucher. Never includes the scratch code."""
    id: uuid.UUID
    owner_id: uuid.UUID
    owner_display_name: str | None
    title: str
    description: str
    category: str
    terms: str
    instructions: str
    image_url: str | None
    original_price_cents: int
    listed_price_cents: int
    discount_bps: int
    seller_payout_cents: int
    platform_fee_bps: int
    company_share_bps: int
    quantity: int
    limit_per_user: int
    expiry_date: datetime
    status: str
    status_label: str
    is_approved: bool
    verification_status: str
    rejection_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminVoucherResponse(VoucherResponse):
    """Admin view — adds the fraud review counter."""
    is_active: bool
    attempts: int
    verified_at: datetime | None
    verified_by_id: uuid.UUID | None


class VoucherVerifyRequest(BaseModel):
    """Request body for PATCH /admin/vouchers/{id}/verify."""
    action: Literal["approve", "reject"]
    reason: str | None = Field(None, max_length=500)


class MaintenanceResponse(BaseModel):
    """Response body for POST /admin/maintenance/expire."""
    expired_vouchers: int
    expired_transactions: int
