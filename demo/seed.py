#!/usr/bin/env python3
"""
Demo seed script — populates the marketplace with sample data for demos.

!! NOT FOR PRODUCTION !!
This script creates test users with known passwords, listings with made-up
scratch codes and fake purchases. It is intended ONLY for local demos and
frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

Login credentials after seeding:
    ┌──────────────────────────────┬───────────────────┬────────┐
    │ Email                        │ Password          │ Role   │
    ├──────────────────────────────┼───────────────────┼────────┤
    │ admin@vouchify.dev           │ AdminDemo123!     │ ADMIN  │
    │ priya.sharma@example.com     │ PriyaDemo123!     │ MEMBER │
    │ arjun.mehta@example.com      │ ArjunDemo123!     │ MEMBER │
    │ neha.iyer@example.com        │ NehaDemo123!      │ MEMBER │
    │ rohan.das@example.com        │ RohanDemo123!     │ MEMBER │
    └──────────────────────────────┴───────────────────┴────────┘
"""

import argparse
import asyncio
import os
import random
import string
import sys
from datetime import datetime, timedelta, timezone

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo users
# ---------------------------------------------------------------------------

ADMIN = {
    "email": "admin@vouchify.dev",
    "password": "AdminDemo123!",
    "display_name": "Vouchify Admin",
}

# Sellers list vouchers, buyers top up their wallets and shop
MEMBERS = [
    {
        "email": "priya.sharma@example.com",
        "password": "PriyaDemo123!",
        "display_name": "Priya Sharma",
        "wallet_top_up": 0,
        "listings": [
            {"brand": "amazon", "title": "Amazon Pay gift card", "original": 100000, "listed": 90000, "quantity": 2},
            {"brand": "zomato", "title": "Zomato dining voucher", "original": 50000, "listed": 42500, "quantity": 3},
        ],
    },
    {
        "email": "arjun.mehta@example.com",
        "password": "ArjunDemo123!",
        "display_name": "Arjun Mehta",
        "wallet_top_up": 0,
        "listings": [
            {"brand": "myntra", "title": "Myntra fashion voucher", "original": 200000, "listed": 170000, "quantity": 1},
            {"brand": "uber", "title": "Uber ride credit", "original": 30000, "listed": 27000, "quantity": 4},
        ],
    },
    {
        "email": "neha.iyer@example.com",
        "password": "NehaDemo123!",
        "display_name": "Neha Iyer",
        "wallet_top_up": 150000,
        "listings": [],
    },
    {
        "email": "rohan.das@example.com",
        "password": "RohanDemo123!",
        "display_name": "Rohan Das",
        "wallet_top_up": 50000,
        "listings": [],
    },
]

# One placeholder PNG stands in for every payment screenshot
PAYMENT_PROOF = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def paise_to_rupees(paise: int) -> str:
    return f"₹{paise / 100:,.2f}"


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def random_code(brand: str) -> str:
    """A random code in the brand's format. May still trip the placeholder check."""
    alphabet = string.ascii_uppercase + string.digits

    def chunk(n: int) -> str:
        return "".join(random.choices(alphabet, k=n))

    if brand == "amazon":
        return f"{chunk(4)}-{chunk(6)}-{chunk(4)}"
    if brand == "myntra":
        return chunk(16)
    if brand == "uber":
        return chunk(12)
    return chunk(14)


async def signup(client: httpx.AsyncClient, user: dict) -> dict:
    """Sign up a user, return {user_id, token}."""
    resp = await client.post(f"{BASE_URL}/auth/signup", json={
        "email": user["email"],
        "password": user["password"],
        "display_name": user["display_name"],
    })
    resp.raise_for_status()
    data = resp.json()
    return {"user_id": data["user_id"], "token": data["token"]}


async def create_listing(client: httpx.AsyncClient, token: str, listing: dict) -> dict:
    """List a voucher and submit it for verification right away.

    A freshly drawn code is retried when the server refuses it as a
    placeholder or duplicate.
    """
    expiry = datetime.now(timezone.utc) + timedelta(days=random.randint(30, 180))
    for _ in range(5):
        resp = await client.post(
            f"{BASE_URL}/vouchers",
            json={
                "title": listing["title"],
                "description": f"{listing['title']}, unused and valid across India.",
                "category": listing["brand"],
                "terms": "Single use. Cannot be exchanged for cash.",
                "instructions": "Apply the code at checkout.",
                "original_price_cents": listing["original"],
                "listed_price_cents": listing["listed"],
                "quantity": listing["quantity"],
                "limit_per_user": 1,
                "expiry_date": expiry.isoformat(),
                "scratch_code": random_code(listing["brand"]),
                "publish": True,
            },
            headers=auth_header(token),
        )
        if resp.status_code == 201:
            return resp.json()
    resp.raise_for_status()
    raise RuntimeError(f"Could not list {listing['title']}: {resp.text}")


async def approve(client: httpx.AsyncClient, admin_token: str, voucher_id: str) -> None:
    resp = await client.patch(
        f"{BASE_URL}/admin/vouchers/{voucher_id}/verify",
        json={"action": "approve"},
        headers=auth_header(admin_token),
    )
    resp.raise_for_status()


async def credit_wallet(client: httpx.AsyncClient, admin_token: str, user_id: str, amount_cents: int) -> int:
    """Members cannot fund their own wallets; the admin credits a verified payment."""
    resp = await client.put(
        f"{BASE_URL}/admin/users/{user_id}/wallet/credit",
        json={"amount_cents": amount_cents, "reference": "Demo UPI payment"},
        headers=auth_header(admin_token),
    )
    resp.raise_for_status()
    return resp.json()["balance_cents"]


async def purchase(client: httpx.AsyncClient, token: str, voucher_id: str, method: str) -> dict:
    body: dict = {"payment_method": method}
    if method == "cash":
        body["payment_proof"] = PAYMENT_PROOF
        body["payment_reference"] = f"UPI-{random.randint(100000, 999999)}"
    resp = await client.post(
        f"{BASE_URL}/vouchers/{voucher_id}/purchase",
        json=body,
        headers=auth_header(token),
    )
    return resp.json()


async def confirm(client: httpx.AsyncClient, admin_token: str, transaction_id: str) -> dict:
    resp = await client.put(
        f"{BASE_URL}/admin/transactions/{transaction_id}/confirm",
        headers=auth_header(admin_token),
    )
    resp.raise_for_status()
    return resp.json()


async def pay_out(client: httpx.AsyncClient, admin_token: str, seller_id: str) -> int:
    resp = await client.post(
        f"{BASE_URL}/payouts/bulk-process",
        json={"seller_id": seller_id, "payment_reference": "NEFT-DEMO"},
        headers=auth_header(admin_token),
    )
    resp.raise_for_status()
    return resp.json()["paid_count"]


async def promote_to_admin(admin_email: str) -> None:
    """Directly update the user's role to ADMIN in the database.

    There is no promotion endpoint: admin provisioning is an operator
    action, not self-service.
    """
    from sqlalchemy import update
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from vouchify.config import settings
    from vouchify.models.user import User, UserRole

    engine = create_async_engine(settings.DATABASE_URL)
    session_factory = async_sessionmaker(engine, class_=AsyncSession)

    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.email == admin_email)
            .values(role=UserRole.ADMIN)
        )
        await session.commit()

    await engine.dispose()


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn vouchify.main:app --reload\n")
            sys.exit(1)

        # --- Admin ---
        print("Creating admin user...")
        admin_token = (await signup(client, ADMIN))["token"]
        await promote_to_admin(ADMIN["email"])
        log(f"Admin: {ADMIN['email']} / {ADMIN['password']}")

        # --- Members and listings ---
        tokens: dict[str, str] = {}
        sellers: dict[str, str] = {}
        listed: list[dict] = []

        for member in MEMBERS:
            print(f"\nCreating {member['display_name']}...")
            account = await signup(client, member)
            token = account["token"]
            tokens[member["email"]] = token
            log(f"Login: {member['email']} / {member['password']}")

            for listing in member["listings"]:
                voucher = await create_listing(client, token, listing)
                await approve(client, admin_token, voucher["id"])
                sellers[member["email"]] = voucher["owner_id"]
                listed.append(voucher)
                log(
                    f"  Listed {listing['title']} x{listing['quantity']} "
                    f"at {paise_to_rupees(listing['listed'])}"
                )

            if member["wallet_top_up"]:
                balance = await credit_wallet(
                    client, admin_token, account["user_id"], member["wallet_top_up"]
                )
                log(f"  Wallet balance: {paise_to_rupees(balance)}")

        # --- Purchases ---
        print("\nCreating purchases...")
        buyers = [m for m in MEMBERS if not m["listings"]]
        confirmed = 0
        for buyer in buyers:
            token = tokens[buyer["email"]]
            for voucher in random.sample(listed, k=min(3, len(listed))):
                method = random.choice(["wallet", "cash"])
                txn = await purchase(client, token, voucher["id"], method)
                if "error_type" in txn:
                    log(f"{buyer['display_name']} could not buy {voucher['title']}: {txn['detail']}")
                    continue
                log(f"{buyer['display_name']} bought {voucher['title']} ({method}): {txn['status']}")

                # Confirm most cash orders, leave the rest in the admin queue
                if method == "cash" and random.random() < 0.7:
                    await confirm(client, admin_token, txn["id"])
                    confirmed += 1
        log(f"Admin confirmed {confirmed} cash payments")

        # --- Payouts ---
        print("\nPaying out the first seller...")
        first_seller = next(m for m in MEMBERS if m["listings"])
        paid = await pay_out(client, admin_token, sellers[first_seller["email"]])
        log(f"{first_seller['display_name']}: {paid} payouts marked paid")

    # --- Summary ---
    print("\n========================================")
    print("  SEED COMPLETE — Login Credentials")
    print("========================================")
    print(f"\n  {'Email':<30s} {'Password':<20s} {'Role'}")
    print(f"  {'─' * 30} {'─' * 20} {'─' * 6}")
    print(f"  {ADMIN['email']:<30s} {ADMIN['password']:<20s} ADMIN")
    for m in MEMBERS:
        print(f"  {m['email']:<30s} {m['password']:<20s} MEMBER")
    print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "vouchify.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample users, listings, purchases and payouts for demos.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())
