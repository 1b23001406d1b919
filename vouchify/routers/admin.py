"""
Admin router — payment verification, listing verification and maintenance.

All endpoints require the ADMIN role.

Endpoints:
  GET  /admin/transactions                        — List ALL transactions
  PUT  /admin/transactions/{id}/confirm           — Confirm a manual payment
  PUT  /admin/transactions/{id}/reject            — Reject a payment
  PUT  /admin/transactions/{id}/refund            — Refund a paid sale
  PUT  /admin/transactions/{id}/mark-paid         — Record a processor payment
  GET  /admin/vouchers/pending                    — Listings awaiting verification
  PATCH /admin/vouchers/{id}/verify               — Approve or reject a listing
  GET  /admin/analytics                           — Marketplace totals
  POST /admin/maintenance/expire                  — Expire stale purchases and vouchers
  PUT  /admin/users/{id}/wallet/credit            — Credit a verified wallet payment

By consolidating all admin routes in one router, we avoid route-ordering
conflicts with the member routers' parameterized paths.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.database import get_db
from vouchify.dependencies import require_admin
from vouchify.models.user import User
from vouchify.routers.wallet import wallet_response
from vouchify.schemas.analytics import AnalyticsResponse
from vouchify.schemas.transaction import AdminActionRequest, AdminTransactionResponse
from vouchify.schemas.voucher import (
    AdminVoucherResponse,
    MaintenanceResponse,
    VoucherVerifyRequest,
)
from vouchify.schemas.wallet import TopUpRequest, WalletResponse
from vouchify.services import (
    analytics_service,
    purchase_service,
    settlement_service,
    voucher_service,
    wallet_service,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

@router.get(
    "/transactions",
    response_model=list[AdminTransactionResponse],
    summary="[Admin] List ALL transactions",
)
async def admin_list_transactions(
    status: str | None = Query(None, description="Filter by status"),
    payment_method: str | None = Query(None, description="Filter by payment method"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Every transaction with raw statuses and payment proofs, newest first."""
    return await purchase_service.admin_list_transactions(
        db,
        status_filter=status,
        payment_method=payment_method,
        limit=limit,
        offset=offset,
    )


@router.put(
    "/transactions/{transaction_id}/confirm",
    response_model=AdminTransactionResponse,
    summary="[Admin] Confirm a payment",
)
async def confirm_transaction(
    transaction_id: uuid.UUID,
    request: AdminActionRequest | None = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Complete the sale: verifies the stored code decrypts, releases it to
    the buyer and creates the seller's payout.
    """
    return await settlement_service.confirm_payment(
        db,
        transaction_id,
        admin=admin,
        admin_note=request.admin_note if request else None,
    )


@router.put(
    "/transactions/{transaction_id}/reject",
    response_model=AdminTransactionResponse,
    summary="[Admin] Reject a payment",
)
async def reject_transaction(
    transaction_id: uuid.UUID,
    request: AdminActionRequest | None = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Fail the purchase and put the reserved unit back on sale."""
    return await settlement_service.reject_payment(
        db,
        transaction_id,
        admin=admin,
        admin_note=request.admin_note if request else None,
    )


@router.put(
    "/transactions/{transaction_id}/refund",
    response_model=AdminTransactionResponse,
    summary="[Admin] Refund a sale",
)
async def refund_transaction(
    transaction_id: uuid.UUID,
    request: AdminActionRequest | None = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Refund a paid or completed sale; wallet purchases are credited back."""
    return await settlement_service.refund(
        db,
        transaction_id,
        admin=admin,
        admin_note=request.admin_note if request else None,
    )


@router.put(
    "/transactions/{transaction_id}/mark-paid",
    response_model=AdminTransactionResponse,
    summary="[Admin] Record a processor payment",
)
async def mark_transaction_paid(
    transaction_id: uuid.UUID,
    request: AdminActionRequest | None = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await settlement_service.mark_paid(
        db,
        transaction_id,
        admin=admin,
        payment_reference=request.payment_reference if request else None,
        admin_note=request.admin_note if request else None,
    )


# ---------------------------------------------------------------------------
# Vouchers
# ---------------------------------------------------------------------------

@router.get(
    "/vouchers/pending",
    response_model=list[AdminVoucherResponse],
    summary="[Admin] Listings awaiting verification",
)
async def admin_list_pending_vouchers(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await voucher_service.admin_list_pending(db)


@router.patch(
    "/vouchers/{voucher_id}/verify",
    response_model=AdminVoucherResponse,
    summary="[Admin] Approve or reject a listing",
)
async def verify_voucher(
    voucher_id: uuid.UUID,
    request: VoucherVerifyRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await voucher_service.verify_voucher(
        db,
        voucher_id,
        admin=admin,
        approve=request.action == "approve",
        reason=request.reason,
    )


# ---------------------------------------------------------------------------
# Analytics and maintenance
# ---------------------------------------------------------------------------

@router.get(
    "/analytics",
    response_model=AnalyticsResponse,
    summary="[Admin] Marketplace totals",
)
async def analytics(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await analytics_service.get_summary(db)


@router.post(
    "/maintenance/expire",
    response_model=MaintenanceResponse,
    summary="[Admin] Expire stale purchases and vouchers",
)
async def run_expiry(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Fail purchases left unconfirmed past PAYMENT_CONFIRMATION_TIMEOUT_HOURS
    (releasing their units), then mark vouchers past their expiry date as
    expired.
    """
    expired_transactions = await settlement_service.expire_stale_confirmations(db)
    expired_vouchers = await voucher_service.sweep_expired_vouchers(db)
    return MaintenanceResponse(
        expired_vouchers=expired_vouchers,
        expired_transactions=expired_transactions,
    )


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------

@router.put(
    "/users/{user_id}/wallet/credit",
    response_model=WalletResponse,
    summary="[Admin] Credit a member's wallet",
)
async def credit_wallet(
    user_id: uuid.UUID,
    request: TopUpRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Add funds to a member's wallet once their UPI/bank payment has been
    verified. Amount in minor units (e.g. ₹500.00 = 50000).
    """
    await wallet_service.top_up(
        db,
        user_id=user_id,
        amount_cents=request.amount_cents,
        admin=admin,
        reference=request.reference,
    )
    return await wallet_response(db, user_id)
