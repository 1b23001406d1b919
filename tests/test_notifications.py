"""
Tests for in-app notifications (/notifications).

These tests verify:
  - Users only see their own notifications, newest first
  - Marking one or all as read, and the unread filter
  - Another user's notification cannot be marked (403), unknown IDs 404
"""

import uuid

from tests.helpers import CASH


async def seed_notifications(buyer_client, live_voucher) -> None:
    """A purchase notifies buyer, seller and admins."""
    voucher, _ = await live_voucher()
    await buyer_client.post(f"/vouchers/{voucher['id']}/purchase", json=CASH)


class TestNotifications:

    async def test_list_own_notifications(self, buyer_client, seller_client, live_voucher):
        await seed_notifications(buyer_client, live_voucher)

        buyer_notes = (await buyer_client.get("/notifications")).json()
        assert len(buyer_notes) == 1
        assert buyer_notes[0]["read"] is False
        assert buyer_notes[0]["link"].startswith("/transactions/")

        seller_notes = (await seller_client.get("/notifications")).json()
        # Verification notice first, then the order
        assert len(seller_notes) == 2
        assert "ordered your voucher" in seller_notes[0]["message"]

    async def test_mark_one_read(self, buyer_client, live_voucher):
        await seed_notifications(buyer_client, live_voucher)
        note_id = (await buyer_client.get("/notifications")).json()[0]["id"]

        response = await buyer_client.patch(f"/notifications/{note_id}/read")

        assert response.status_code == 200
        assert response.json()["read"] is True
        unread = (await buyer_client.get("/notifications", params={"unread_only": True})).json()
        assert unread == []

    async def test_mark_all_read(self, seller_client, buyer_client, live_voucher):
        await seed_notifications(buyer_client, live_voucher)

        response = await seller_client.patch("/notifications/read-all")

        assert response.status_code == 200
        assert response.json() == {"updated": 2}
        notes = (await seller_client.get("/notifications")).json()
        assert all(n["read"] for n in notes)
        # The buyer's notifications are untouched
        assert (await buyer_client.get("/notifications")).json()[0]["read"] is False

    async def test_cannot_mark_someone_elses(self, buyer_client, seller_client, live_voucher):
        await seed_notifications(buyer_client, live_voucher)
        note_id = (await buyer_client.get("/notifications")).json()[0]["id"]

        response = await seller_client.patch(f"/notifications/{note_id}/read")
        assert response.status_code == 403

    async def test_unknown_notification(self, buyer_client):
        response = await buyer_client.patch(f"/notifications/{uuid.uuid4()}/read")
        assert response.status_code == 404

    async def test_pagination(self, seller_client, buyer_client, live_voucher):
        await seed_notifications(buyer_client, live_voucher)

        page = (await seller_client.get("/notifications", params={"limit": 1})).json()
        assert len(page) == 1

    async def test_requires_auth(self, client):
        assert (await client.get("/notifications")).status_code == 401
