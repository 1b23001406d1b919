"""
Pydantic schemas for purchase and Transaction endpoints.

All monetary amounts are in integer minor units (paise for INR).

Transaction responses carry both the raw `status` and a buyer-facing
`status_label` ("Pending Admin Confirmation", "Payment Rejected", ...).
The scratch code is never part of a transaction response; it is returned
only by GET /transactions/{id}/scratch-code as ScratchCodeResponse.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

# Base64 screenshots of UPI/bank receipts
MAX_PROOF_LENGTH = 2_000_000


class PurchaseRequest(BaseModel):
    """Request body for POST /vouchers/{id}/purchase."""
    payment_method: Literal["cash", "stripe", "wallet"]
    payment_proof: str | None = Field(
        None,
        max_length=MAX_PROOF_LENGTH,
        description="Proof of a manual payment (required for cash)",
    )
    payment_reference: str | None = Field(
        None,
        max_length=255,
        description="UPI/bank reference or processor session ID",
    )

    @model_validator(mode="after")
    def cash_requires_proof(self):
        """A manual payment can only be confirmed against a proof."""
        if self.payment_method == "cash" and not self.payment_proof:
            raise ValueError("payment_proof is required for cash payments")
        return self


class PaymentProofRequest(BaseModel):
    """Request body for POST /transactions/{id}/payment-proof."""
    payment_proof: str = Field(min_length=1, max_length=MAX_PROOF_LENGTH)
    payment_reference: str | None = Field(None, max_length=255)


class AdminActionRequest(BaseModel):
    """Request body for the PUT /admin/transactions/{id}/... actions."""
    admin_note: str | None = Field(None, max_length=500)
    payment_reference: str | None = Field(None, max_length=255)


class TransactionResponse(BaseModel):
    """Public representation of a transaction."""
    id: uuid.UUID
    voucher_id: uuid.UUID
    voucher_title: str | None
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    amount_paid_cents: int
    platform_fee_cents: int
    company_share_cents: int
    seller_payout_cents: int
    payment_method: str
    payment_reference: str | None
    status: str
    status_label: str
    admin_note: str | None
    scratch_code_revealed: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AdminTransactionResponse(TransactionResponse):
    """Admin view — includes the buyer's payment proof for verification."""
    payment_proof: str | None


class ScratchCodeResponse(BaseModel):
    """The decrypted scratch code of a paid purchase."""
    transaction_id: uuid.UUID
    code: str
