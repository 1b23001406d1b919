"""
Tests for seller payouts (/payouts).

These tests verify:
  - Sellers see only their own payouts; admins see all or filter by seller
  - Processing is one-way: a second attempt returns 409
  - Bulk processing pays every pending payout of one seller
  - The query thread is open to the seller and admins, and notifies the
    other side
"""

import uuid

from tests.helpers import CASH, make_code


async def completed_sale(buyer_client, admin_client, live_voucher, **overrides) -> dict:
    voucher, _ = await live_voucher(**overrides)
    txn = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)).json()
    response = await admin_client.put(f"/admin/transactions/{txn['id']}/confirm")
    assert response.status_code == 200, response.text
    return response.json()


class TestListPayouts:

    async def test_seller_sees_own_payouts(
        self, buyer_client, seller_client, second_buyer_client, admin_client, live_voucher
    ):
        txn = await completed_sale(buyer_client, admin_client, live_voucher)

        mine = (await seller_client.get("/payouts")).json()
        assert [p["transaction_id"] for p in mine] == [txn["id"]]
        assert mine[0]["seller_id"] == str(seller_client.user_id)
        assert mine[0]["queries"] == []

        assert (await second_buyer_client.get("/payouts")).json() == []

    async def test_member_cannot_peek_with_seller_filter(
        self, buyer_client, seller_client, second_buyer_client, admin_client, live_voucher
    ):
        await completed_sale(buyer_client, admin_client, live_voucher)

        response = await second_buyer_client.get(
            "/payouts", params={"seller_id": str(seller_client.user_id)}
        )
        assert response.json() == []

    async def test_admin_filters(self, buyer_client, seller_client, admin_client, live_voucher):
        await completed_sale(buyer_client, admin_client, live_voucher)

        by_seller = (
            await admin_client.get("/payouts", params={"seller_id": str(seller_client.user_id)})
        ).json()
        paid = (await admin_client.get("/payouts", params={"status": "paid"})).json()

        assert len(by_seller) == 1
        assert paid == []


class TestProcessPayout:

    async def test_mark_paid(self, buyer_client, seller_client, admin_client, live_voucher):
        await completed_sale(buyer_client, admin_client, live_voucher)
        payout_id = (await seller_client.get("/payouts")).json()[0]["id"]

        response = await admin_client.patch(
            f"/payouts/{payout_id}/process",
            json={
                "action": "mark_paid",
                "payment_reference": "NEFT-889",
                "admin_proof_url": "https://files.example.com/proof.png",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "paid"
        assert data["payment_reference"] == "NEFT-889"
        assert data["processed_at"] is not None

        notes = (await seller_client.get("/notifications")).json()
        assert "has been sent" in notes[0]["message"]

    async def test_reject_with_note(self, buyer_client, seller_client, admin_client, live_voucher):
        await completed_sale(buyer_client, admin_client, live_voucher)
        payout_id = (await seller_client.get("/payouts")).json()[0]["id"]

        response = await admin_client.patch(
            f"/payouts/{payout_id}/process",
            json={"action": "reject", "admin_note": "Bank details invalid"},
        )

        assert response.json()["status"] == "rejected"
        notes = (await seller_client.get("/notifications")).json()
        assert "Bank details invalid" in notes[0]["message"]

    async def test_second_process_conflicts(self, buyer_client, seller_client, admin_client, live_voucher):
        await completed_sale(buyer_client, admin_client, live_voucher)
        payout_id = (await seller_client.get("/payouts")).json()[0]["id"]
        await admin_client.patch(f"/payouts/{payout_id}/process", json={"action": "mark_paid"})

        response = await admin_client.patch(
            f"/payouts/{payout_id}/process", json={"action": "reject"}
        )

        assert response.status_code == 409
        assert response.json()["error_type"] == "payout_already_processed"
        assert (await seller_client.get("/payouts")).json()[0]["status"] == "paid"

    async def test_member_cannot_process(self, buyer_client, seller_client, admin_client, live_voucher):
        await completed_sale(buyer_client, admin_client, live_voucher)
        payout_id = (await seller_client.get("/payouts")).json()[0]["id"]

        response = await seller_client.patch(
            f"/payouts/{payout_id}/process", json={"action": "mark_paid"}
        )
        assert response.status_code == 403

    async def test_unknown_payout(self, admin_client):
        response = await admin_client.patch(
            f"/payouts/{uuid.uuid4()}/process", json={"action": "mark_paid"}
        )
        assert response.status_code == 404

    async def test_invalid_action(self, admin_client):
        response = await admin_client.patch(
            f"/payouts/{uuid.uuid4()}/process", json={"action": "double"}
        )
        assert response.status_code == 422


class TestBulkProcess:

    async def test_bulk_pays_all_pending(
        self, buyer_client, second_buyer_client, seller_client, admin_client, live_voucher
    ):
        voucher, _ = await live_voucher(quantity=5)
        for client in (buyer_client, second_buyer_client):
            txn = (await client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)).json()
            await admin_client.put(f"/admin/transactions/{txn['id']}/confirm")

        response = await admin_client.post(
            "/payouts/bulk-process",
            json={"seller_id": str(seller_client.user_id), "payment_reference": "BATCH-7"},
        )

        assert response.status_code == 200
        assert response.json() == {"seller_id": str(seller_client.user_id), "paid_count": 2}

        payouts = (await seller_client.get("/payouts")).json()
        assert {p["status"] for p in payouts} == {"paid"}
        assert {p["payment_reference"] for p in payouts} == {"BATCH-7"}

    async def test_bulk_skips_processed(self, buyer_client, seller_client, admin_client, live_voucher):
        await completed_sale(buyer_client, admin_client, live_voucher)
        payout_id = (await seller_client.get("/payouts")).json()[0]["id"]
        await admin_client.patch(f"/payouts/{payout_id}/process", json={"action": "reject"})

        response = await admin_client.post(
            "/payouts/bulk-process", json={"seller_id": str(seller_client.user_id)}
        )

        assert response.json()["paid_count"] == 0
        assert (await seller_client.get("/payouts")).json()[0]["status"] == "rejected"


class TestPayoutQueries:

    async def test_seller_asks_admin_replies(self, buyer_client, seller_client, admin_client, live_voucher):
        await completed_sale(buyer_client, admin_client, live_voucher)
        payout_id = (await seller_client.get("/payouts")).json()[0]["id"]

        asked = await seller_client.post(
            f"/payouts/{payout_id}/queries", json={"message": "When will this be paid?"}
        )
        assert asked.status_code == 200
        assert asked.json()["queries"][0]["sender"] == "user"

        admin_notes = (await admin_client.get("/notifications")).json()
        assert any(f"New query on payout {payout_id}" in n["message"] for n in admin_notes)

        replied = await admin_client.post(
            f"/payouts/{payout_id}/queries", json={"message": "Tomorrow."}
        )
        assert [q["sender"] for q in replied.json()["queries"]] == ["user", "admin"]

        seller_notes = (await seller_client.get("/notifications")).json()
        assert "replied" in seller_notes[0]["message"]

    async def test_other_member_cannot_post(
        self, buyer_client, seller_client, admin_client, live_voucher
    ):
        await completed_sale(buyer_client, admin_client, live_voucher)
        payout_id = (await seller_client.get("/payouts")).json()[0]["id"]

        response = await buyer_client.post(
            f"/payouts/{payout_id}/queries", json={"message": "Can I have it?"}
        )
        assert response.status_code == 403

    async def test_empty_message_rejected(self, seller_client):
        response = await seller_client.post(
            f"/payouts/{uuid.uuid4()}/queries", json={"message": ""}
        )
        assert response.status_code == 422


class TestSellerPayoutAmounts:

    async def test_amount_follows_listing_breakdown(
        self, buyer_client, seller_client, admin_client, live_voucher
    ):
        await completed_sale(
            buyer_client, admin_client, live_voucher,
            original_price_cents=20000, listed_price_cents=17999, scratch_code=make_code(),
        )

        payout = (await seller_client.get("/payouts")).json()[0]
        # 17999 - round(2699.85) - round(899.95) = 17999 - 2700 - 900
        assert payout["amount_cents"] == 14399
