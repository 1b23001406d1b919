"""Small builders shared by the test modules."""

import secrets
from datetime import datetime, timedelta, timezone

from vouchify.services.voucher_service import is_dummy_code

CASH = {"payment_method": "cash", "payment_proof": "data:image/png;base64,iVBORw0KGgo="}
STRIPE = {"payment_method": "stripe", "payment_reference": "cs_test_a1b2c3"}
WALLET = {"payment_method": "wallet"}


def make_code(prefix: str = "ZM") -> str:
    """A unique scratch code that passes the zomato format and placeholder checks."""
    while True:
        code = prefix + secrets.token_hex(5).upper()
        if not is_dummy_code(code):
            return code


def future(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


async def fund_wallet(admin_client, member_client, amount_cents: int, reference: str | None = None):
    """Credit a member's wallet the only way the API allows: through an admin."""
    response = await admin_client.put(
        f"/admin/users/{member_client.user_id}/wallet/credit",
        json={"amount_cents": amount_cents, "reference": reference},
    )
    assert response.status_code == 200, response.text
    return response.json()
