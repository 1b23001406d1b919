"""
Admin analytics — marketplace totals for the dashboard.

Sales figures count transactions in a settled state (paid or completed).
Platform revenue is the platform fee plus the company share of those
sales, taken from each transaction's frozen snapshot.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.models.payout import Payout
from vouchify.models.transaction import Transaction
from vouchify.models.user import User
from vouchify.models.voucher import Voucher
from vouchify.services.state_machine import SETTLED_STATUSES
from vouchify.time_utils import utcnow


async def get_summary(db: AsyncSession) -> dict:
    sales = (
        await db.execute(
            select(
                func.count(Transaction.id),
                func.coalesce(func.sum(Transaction.amount_paid_cents), 0),
                func.coalesce(
                    func.sum(Transaction.platform_fee_cents + Transaction.company_share_cents), 0
                ),
            ).where(Transaction.status.in_(SETTLED_STATUSES))
        )
    ).one()

    pending_confirmations = (
        await db.execute(
            select(func.count(Transaction.id)).where(
                Transaction.status == "pending_admin_confirmation"
            )
        )
    ).scalar_one()

    pending_payouts = (
        await db.execute(
            select(func.coalesce(func.sum(Payout.amount_cents), 0)).where(
                Payout.status == "pending"
            )
        )
    ).scalar_one()

    active_vouchers = (
        await db.execute(
            select(func.count(Voucher.id)).where(
                Voucher.status == "published",
                Voucher.is_approved.is_(True),
                Voucher.is_active.is_(True),
                Voucher.quantity > 0,
                Voucher.expiry_date > utcnow(),
            )
        )
    ).scalar_one()

    vouchers_awaiting_verification = (
        await db.execute(select(func.count(Voucher.id)).where(Voucher.status == "pending"))
    ).scalar_one()

    total_users = (await db.execute(select(func.count(User.id)))).scalar_one()

    return {
        "settled_sales_count": sales[0],
        "settled_sales_cents": sales[1],
        "platform_revenue_cents": sales[2],
        "pending_confirmations": pending_confirmations,
        "pending_payouts_cents": pending_payouts,
        "active_vouchers": active_vouchers,
        "vouchers_awaiting_verification": vouchers_awaiting_verification,
        "total_users": total_users,
    }
