"""Pydantic schemas for the admin analytics endpoint."""

from pydantic import BaseModel


class AnalyticsResponse(BaseModel):
    """
    Marketplace totals. Sales count paid and completed transactions;
    platform revenue is platform fees plus company shares of those sales.
    """
    settled_sales_count: int
    settled_sales_cents: int
    platform_revenue_cents: int
    pending_confirmations: int
    pending_payouts_cents: int
    active_vouchers: int
    vouchers_awaiting_verification: int
    total_users: int
