"""
Tests for GET /transactions/{id}/scratch-code.

These tests verify:
  - The code is only released once the payment is verified (409 before)
  - Repeated reveals return the same code
  - The seller and other members get 403, and each attempt is counted
  - Admins can reveal without flagging the code as released to the buyer
"""

import uuid

from sqlalchemy import select

from vouchify.models.voucher import Voucher
from tests.helpers import CASH, STRIPE


async def attempts_of(session_factory, voucher_id: str) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(Voucher.attempts).where(Voucher.id == uuid.UUID(voucher_id))
        )
        return result.scalar_one()


class TestRevealGate:

    async def test_not_revealed_before_confirmation(self, buyer_client, live_voucher):
        voucher, code = await live_voucher()
        txn = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)).json()

        response = await buyer_client.get(f"/transactions/{txn['id']}/scratch-code")

        assert response.status_code == 409
        assert response.json()["error_type"] == "payment_not_verified"
        assert code not in response.text

    async def test_not_revealed_while_pending(self, buyer_client, live_voucher):
        voucher, _ = await live_voucher()
        txn = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=STRIPE)).json()

        response = await buyer_client.get(f"/transactions/{txn['id']}/scratch-code")
        assert response.status_code == 409

    async def test_not_revealed_after_rejection(self, buyer_client, admin_client, live_voucher):
        voucher, _ = await live_voucher()
        txn = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)).json()
        await admin_client.put(f"/admin/transactions/{txn['id']}/reject")

        response = await buyer_client.get(f"/transactions/{txn['id']}/scratch-code")
        assert response.status_code == 409

    async def test_revealed_after_confirmation(self, buyer_client, admin_client, live_voucher):
        voucher, code = await live_voucher()
        txn = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)).json()
        await admin_client.put(f"/admin/transactions/{txn['id']}/confirm")

        response = await buyer_client.get(f"/transactions/{txn['id']}/scratch-code")

        assert response.status_code == 200
        assert response.json() == {"transaction_id": txn["id"], "code": code}

    async def test_reveal_is_repeatable(self, buyer_client, admin_client, live_voucher):
        voucher, code = await live_voucher()
        txn = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)).json()
        await admin_client.put(f"/admin/transactions/{txn['id']}/confirm")

        first = await buyer_client.get(f"/transactions/{txn['id']}/scratch-code")
        second = await buyer_client.get(f"/transactions/{txn['id']}/scratch-code")

        assert first.json()["code"] == second.json()["code"] == code


class TestRevealAccess:

    async def test_seller_cannot_reveal(
        self, buyer_client, seller_client, admin_client, live_voucher, session_factory
    ):
        voucher, code = await live_voucher()
        txn = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)).json()
        await admin_client.put(f"/admin/transactions/{txn['id']}/confirm")

        response = await seller_client.get(f"/transactions/{txn['id']}/scratch-code")

        assert response.status_code == 403
        assert response.json()["error_type"] == "unauthorized_access"
        assert code not in response.text
        assert await attempts_of(session_factory, voucher["id"]) == 1

    async def test_each_stranger_attempt_counted(
        self, buyer_client, second_buyer_client, live_voucher, session_factory
    ):
        voucher, _ = await live_voucher()
        txn = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)).json()

        for _ in range(3):
            response = await second_buyer_client.get(f"/transactions/{txn['id']}/scratch-code")
            assert response.status_code == 403

        assert await attempts_of(session_factory, voucher["id"]) == 3

    async def test_buyer_reveal_not_counted(self, buyer_client, admin_client, live_voucher, session_factory):
        voucher, _ = await live_voucher()
        txn = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)).json()
        await admin_client.put(f"/admin/transactions/{txn['id']}/confirm")

        await buyer_client.get(f"/transactions/{txn['id']}/scratch-code")

        assert await attempts_of(session_factory, voucher["id"]) == 0

    async def test_admin_can_reveal(self, buyer_client, admin_client, live_voucher):
        voucher, code = await live_voucher()
        txn = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=STRIPE)).json()
        await admin_client.put(f"/admin/transactions/{txn['id']}/mark-paid")

        response = await admin_client.get(f"/transactions/{txn['id']}/scratch-code")

        assert response.status_code == 200
        assert response.json()["code"] == code
        # Only the buyer's own reveal marks the code as released
        detail = (await buyer_client.get(f"/transactions/{txn['id']}")).json()
        assert detail["scratch_code_revealed"] is False

    async def test_buyer_reveal_sets_flag(self, buyer_client, admin_client, live_voucher):
        voucher, _ = await live_voucher()
        txn = (await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=STRIPE)).json()
        await admin_client.put(f"/admin/transactions/{txn['id']}/mark-paid")

        await buyer_client.get(f"/transactions/{txn['id']}/scratch-code")

        detail = (await buyer_client.get(f"/transactions/{txn['id']}")).json()
        assert detail["scratch_code_revealed"] is True

    async def test_unknown_transaction(self, buyer_client):
        response = await buyer_client.get(f"/transactions/{uuid.uuid4()}/scratch-code")
        assert response.status_code == 404
