"""
Pricing — split a listed price into platform fee, company share and payout.

All amounts are integer minor units and all rates are basis points, so the
only rounding happens when a rate is applied to an amount. Each such step
rounds half-up to a whole minor unit (i.e. to 2 decimal places of the
currency), and the seller payout is derived by subtraction, so

    platform_fee + company_share + seller_payout == listed_price

holds exactly for every listing and every transaction snapshot.

The breakdown is computed when a voucher is listed (and when its price is
edited) and copied into the Transaction at purchase time. Changing the fee
configuration afterwards never alters a settled sale.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class PriceBreakdown:
    listed_price_cents: int
    platform_fee_cents: int
    company_share_cents: int
    seller_payout_cents: int
    discount_bps: int


def apply_rate(amount_cents: int, rate_bps: int) -> int:
    """Return amount * rate rounded half-up to a whole minor unit."""
    value = Decimal(amount_cents) * Decimal(rate_bps) / Decimal(BPS_DENOMINATOR)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def discount_bps(original_price_cents: int, listed_price_cents: int) -> int:
    """Discount off face value in basis points (0 when face value is 0)."""
    if original_price_cents <= 0:
        return 0
    value = (
        Decimal(original_price_cents - listed_price_cents)
        * Decimal(BPS_DENOMINATOR)
        / Decimal(original_price_cents)
    )
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_breakdown(
    original_price_cents: int,
    listed_price_cents: int,
    platform_fee_bps: int,
    company_share_bps: int,
) -> PriceBreakdown:
    """
    Compute the full pricing breakdown for a listing.

    Raises:
        ValueError: If the listed price exceeds face value, an amount is
                    negative, or the combined rates exceed 100%.
    """
    if original_price_cents < 0 or listed_price_cents < 0:
        raise ValueError("Prices cannot be negative")
    if listed_price_cents > original_price_cents:
        raise ValueError("Listed price cannot exceed original price")
    if platform_fee_bps < 0 or company_share_bps < 0:
        raise ValueError("Fee rates cannot be negative")
    if platform_fee_bps + company_share_bps > BPS_DENOMINATOR:
        raise ValueError("Platform fee and company share cannot exceed 100%")

    platform_fee = apply_rate(listed_price_cents, platform_fee_bps)
    # Two half-up roundings at a combined 100% could overshoot by one unit
    company_share = min(
        apply_rate(listed_price_cents, company_share_bps),
        listed_price_cents - platform_fee,
    )

    return PriceBreakdown(
        listed_price_cents=listed_price_cents,
        platform_fee_cents=platform_fee,
        company_share_cents=company_share,
        seller_payout_cents=listed_price_cents - platform_fee - company_share,
        discount_bps=discount_bps(original_price_cents, listed_price_cents),
    )
