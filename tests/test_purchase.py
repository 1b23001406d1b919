"""
Tests for buying vouchers (POST /vouchers/{id}/purchase) and reading
the resulting transactions.

These tests verify:
  - Cash with proof waits in pending_admin_confirmation and takes one unit
  - Stripe purchases wait in pending; proof can be attached afterwards
  - Wallet purchases complete immediately and debit the wallet
  - The transaction freezes the pricing breakdown
  - Availability errors come back in order: not found, not available,
    expired, sold out, purchase limit, self purchase
  - A failed purchase leaves quantity and wallet untouched
  - Buyers, sellers and strangers see only what they should
"""

import uuid
from datetime import timedelta

from sqlalchemy import update

from vouchify.models.voucher import Voucher
from vouchify.time_utils import utcnow
from tests.helpers import CASH, STRIPE, WALLET, fund_wallet, future, make_code


async def quantity_of(client, voucher_id: str) -> int:
    return (await client.get(f"/vouchers/{voucher_id}")).json()["quantity"]


async def set_voucher(session_factory, voucher_id: str, **values) -> None:
    async with session_factory() as session:
        await session.execute(
            update(Voucher).where(Voucher.id == uuid.UUID(voucher_id)).values(**values)
        )
        await session.commit()


# ---------------------------------------------------------------------------
# Successful purchases
# ---------------------------------------------------------------------------

class TestCashPurchase:

    async def test_cash_with_proof_awaits_confirmation(self, buyer_client, seller_client, live_voucher):
        """One unit is reserved and the purchase waits for an admin."""
        voucher, _ = await live_voucher(quantity=5)

        response = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending_admin_confirmation"
        assert data["status_label"] == "Pending Admin Confirmation"
        assert data["payment_method"] == "cash"
        assert data["scratch_code_revealed"] is False
        assert data["buyer_id"] == str(buyer_client.user_id)
        assert data["seller_id"] == str(seller_client.user_id)
        assert await quantity_of(buyer_client, voucher["id"]) == 4

    async def test_response_never_contains_code(self, buyer_client, live_voucher):
        voucher, code = await live_voucher()

        response = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)

        assert code not in response.text
        assert "payment_proof" not in response.json()

    async def test_pricing_snapshot(self, buyer_client, live_voucher):
        voucher, _ = await live_voucher(original_price_cents=50000, listed_price_cents=45000)

        data = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)).json()

        assert data["amount_paid_cents"] == 45000
        assert data["platform_fee_cents"] == 6750
        assert data["company_share_cents"] == 2250
        assert data["seller_payout_cents"] == 36000

    async def test_cash_requires_proof(self, buyer_client, live_voucher):
        voucher, _ = await live_voucher()

        response = await buyer_client.post(
            f"/vouchers/{voucher['id']}/purchase", json={"payment_method": "cash"}
        )

        assert response.status_code == 422
        assert await quantity_of(buyer_client, voucher["id"]) == 5

    async def test_unknown_payment_method(self, buyer_client, live_voucher):
        voucher, _ = await live_voucher()

        response = await buyer_client.post(
            f"/vouchers/{voucher['id']}/purchase", json={"payment_method": "barter"}
        )
        assert response.status_code == 422

    async def test_last_unit_marks_sold_out(self, buyer_client, live_voucher):
        voucher, _ = await live_voucher(quantity=1)

        await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)

        data = (await buyer_client.get(f"/vouchers/{voucher['id']}")).json()
        assert data["quantity"] == 0
        assert data["status"] == "sold_out"

    async def test_parties_are_notified(self, buyer_client, seller_client, admin_client, live_voucher):
        voucher, _ = await live_voucher()

        await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)

        buyer_notes = (await buyer_client.get("/notifications")).json()
        seller_notes = (await seller_client.get("/notifications")).json()
        admin_notes = (await admin_client.get("/notifications")).json()
        assert any("Awaiting payment confirmation" in n["message"] for n in buyer_notes)
        assert any("ordered your voucher" in n["message"] for n in seller_notes)
        assert any("Payment proof submitted" in n["message"] for n in admin_notes)


class TestStripePurchase:

    async def test_stripe_waits_in_pending(self, buyer_client, live_voucher):
        voucher, _ = await live_voucher()

        response = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=STRIPE)

        assert response.status_code == 201
        assert response.json()["status"] == "pending"
        assert response.json()["payment_reference"] == "cs_test_a1b2c3"

    async def test_attach_proof_later(self, buyer_client, live_voucher):
        voucher, _ = await live_voucher()
        txn_id = (
            await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=STRIPE)
        ).json()["id"]

        response = await buyer_client.post(
            f"/transactions/{txn_id}/payment-proof",
            json={"payment_proof": "bank-receipt", "payment_reference": "UTR123456"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "pending_admin_confirmation"
        assert response.json()["payment_reference"] == "UTR123456"

    async def test_replace_proof_keeps_status(self, buyer_client, live_voucher):
        voucher, _ = await live_voucher()
        txn_id = (
            await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)
        ).json()["id"]

        response = await buyer_client.post(
            f"/transactions/{txn_id}/payment-proof", json={"payment_proof": "clearer-photo"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "pending_admin_confirmation"

    async def test_only_buyer_attaches_proof(self, buyer_client, second_buyer_client, live_voucher):
        voucher, _ = await live_voucher()
        txn_id = (
            await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=STRIPE)
        ).json()["id"]

        response = await second_buyer_client.post(
            f"/transactions/{txn_id}/payment-proof", json={"payment_proof": "fake"}
        )
        assert response.status_code == 403


class TestWalletPurchase:

    async def test_wallet_purchase_completes(self, buyer_client, seller_client, admin_client, live_voucher):
        voucher, code = await live_voucher(listed_price_cents=45000)
        await fund_wallet(admin_client, buyer_client, 50000)

        response = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=WALLET)

        assert response.status_code == 201
        txn = response.json()
        assert txn["status"] == "completed"
        assert txn["scratch_code_revealed"] is True

        wallet = (await buyer_client.get("/wallet")).json()
        assert wallet["balance_cents"] == 5000
        assert wallet["entries"][0]["type"] == "debit"
        assert wallet["entries"][0]["amount_cents"] == 45000

        reveal = await buyer_client.get(f"/transactions/{txn['id']}/scratch-code")
        assert reveal.json()["code"] == code

        payouts = (await seller_client.get("/payouts")).json()
        assert [p["amount_cents"] for p in payouts] == [36000]

    async def test_insufficient_funds_reserves_nothing(self, buyer_client, admin_client, live_voucher):
        voucher, _ = await live_voucher(listed_price_cents=45000)
        await fund_wallet(admin_client, buyer_client, 1000)

        response = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=WALLET)

        assert response.status_code == 422
        data = response.json()
        assert data["error_type"] == "insufficient_funds"
        assert data["requested_cents"] == 45000
        assert data["available_cents"] == 1000
        assert await quantity_of(buyer_client, voucher["id"]) == 5
        assert (await buyer_client.get("/wallet")).json()["balance_cents"] == 1000
        assert (await buyer_client.get("/transactions")).json() == []


# ---------------------------------------------------------------------------
# Availability checks
# ---------------------------------------------------------------------------

class TestAvailability:

    async def test_unknown_voucher(self, buyer_client):
        response = await buyer_client.post(f"/vouchers/{uuid.uuid4()}/purchase", json=CASH)

        assert response.status_code == 404
        assert response.json()["error_type"] == "not_found"

    async def test_unverified_voucher_not_available(self, buyer_client, seller_client):
        created = await seller_client.post(
            "/vouchers",
            json={
                "title": "Swiggy ₹200",
                "description": "Swiggy gift card",
                "category": "swiggy",
                "original_price_cents": 20000,
                "listed_price_cents": 18000,
                "expiry_date": future(),
                "scratch_code": make_code("SW"),
                "publish": True,
            },
        )

        response = await buyer_client.post(
            f"/vouchers/{created.json()['id']}/purchase", json=CASH
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "not_available"

    async def test_deactivated_voucher_not_available(self, buyer_client, live_voucher, session_factory):
        voucher, _ = await live_voucher()
        await set_voucher(session_factory, voucher["id"], is_active=False)

        response = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)
        assert response.json()["error_type"] == "not_available"

    async def test_expired_voucher(self, buyer_client, live_voucher, session_factory):
        voucher, _ = await live_voucher()
        await set_voucher(session_factory, voucher["id"], expiry_date=utcnow() - timedelta(hours=1))

        response = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)

        assert response.status_code == 409
        assert response.json()["error_type"] == "expired"
        assert await quantity_of(buyer_client, voucher["id"]) == 5

    async def test_sold_out(self, buyer_client, second_buyer_client, live_voucher):
        voucher, _ = await live_voucher(quantity=1)
        await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)

        response = await second_buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)

        assert response.status_code == 409
        assert response.json()["error_type"] == "sold_out"
        assert await quantity_of(buyer_client, voucher["id"]) == 0

    async def test_expired_reported_before_sold_out(
        self, buyer_client, second_buyer_client, live_voucher, session_factory
    ):
        voucher, _ = await live_voucher(quantity=1)
        await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)
        await set_voucher(session_factory, voucher["id"], expiry_date=utcnow() - timedelta(hours=1))

        response = await second_buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)
        assert response.json()["error_type"] == "expired"

    async def test_purchase_limit(self, buyer_client, live_voucher):
        """A buyer holding limit_per_user purchases cannot buy another unit."""
        voucher, _ = await live_voucher(quantity=5, limit_per_user=1)
        await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)

        response = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)

        assert response.status_code == 409
        data = response.json()
        assert data["error_type"] == "purchase_limit_exceeded"
        assert data["limit_per_user"] == 1
        assert await quantity_of(buyer_client, voucher["id"]) == 4

    async def test_limit_above_one(self, buyer_client, live_voucher):
        voucher, _ = await live_voucher(quantity=5, limit_per_user=2)

        first = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=STRIPE)
        second = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=STRIPE)
        third = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=STRIPE)

        assert first.status_code == 201
        assert second.status_code == 201
        assert third.json()["error_type"] == "purchase_limit_exceeded"

    async def test_failed_purchase_frees_limit(self, buyer_client, admin_client, live_voucher):
        """A rejected payment no longer counts against the buyer's limit."""
        voucher, _ = await live_voucher(limit_per_user=1)
        txn_id = (
            await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)
        ).json()["id"]
        await admin_client.put(f"/admin/transactions/{txn_id}/reject")

        response = await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)
        assert response.status_code == 201

    async def test_cannot_buy_own_voucher(self, seller_client, live_voucher):
        voucher, _ = await live_voucher()

        response = await seller_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)

        assert response.status_code == 403
        assert response.json()["error_type"] == "self_purchase_forbidden"
        assert await quantity_of(seller_client, voucher["id"]) == 5

    async def test_requires_auth(self, client, live_voucher):
        voucher, _ = await live_voucher()

        response = await client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# Reading transactions
# ---------------------------------------------------------------------------

class TestTransactionReads:

    async def test_buyer_and_seller_views(self, buyer_client, seller_client, live_voucher):
        voucher, _ = await live_voucher()
        txn_id = (
            await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)
        ).json()["id"]

        bought = (await buyer_client.get("/transactions", params={"type": "bought"})).json()
        sold = (await seller_client.get("/transactions", params={"type": "sold"})).json()

        assert [t["id"] for t in bought] == [txn_id]
        assert [t["id"] for t in sold] == [txn_id]
        assert (await buyer_client.get("/transactions", params={"type": "sold"})).json() == []
        assert bought[0]["voucher_title"] == voucher["title"]

    async def test_status_filter(self, buyer_client, live_voucher):
        voucher, _ = await live_voucher(limit_per_user=2)
        await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)
        await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=STRIPE)

        pending = (await buyer_client.get("/transactions", params={"status": "pending"})).json()
        assert len(pending) == 1
        assert pending[0]["payment_method"] == "stripe"

    async def test_invalid_type_rejected(self, buyer_client):
        response = await buyer_client.get("/transactions", params={"type": "stolen"})
        assert response.status_code == 422

    async def test_stranger_cannot_read(self, buyer_client, second_buyer_client, live_voucher):
        voucher, _ = await live_voucher()
        txn_id = (
            await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)
        ).json()["id"]

        assert (await buyer_client.get(f"/transactions/{txn_id}")).status_code == 200
        assert (await second_buyer_client.get(f"/transactions/{txn_id}")).status_code == 403

    async def test_unknown_transaction(self, buyer_client):
        response = await buyer_client.get(f"/transactions/{uuid.uuid4()}")
        assert response.status_code == 404
