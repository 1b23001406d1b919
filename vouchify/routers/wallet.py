"""
Wallet router — balance and entry history.

Endpoints:
  GET  /wallet         — Balance and recent entries

Members cannot add funds themselves. An admin credits a wallet once the
member's payment has been verified off-platform
(PUT /admin/users/{user_id}/wallet/credit, vouchify/routers/admin.py).
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.database import get_db
from vouchify.dependencies import get_current_user
from vouchify.models.user import User
from vouchify.schemas.wallet import WalletEntryResponse, WalletResponse
from vouchify.services import wallet_service

router = APIRouter()


async def wallet_response(db: AsyncSession, user_id: uuid.UUID, limit: int = 20) -> WalletResponse:
    wallet = await wallet_service.get_or_create_wallet(db, user_id)
    entries = await wallet_service.get_history(db, user_id, limit=limit)
    return WalletResponse(
        id=wallet.id,
        balance_cents=wallet.balance_cents,
        currency=wallet.currency,
        entries=[WalletEntryResponse.model_validate(entry) for entry in entries],
    )


@router.get(
    "",
    response_model=WalletResponse,
    summary="Get my wallet",
)
async def get_wallet(
    limit: int = Query(20, ge=1, le=200, description="Number of recent entries"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The wallet is created empty on first access."""
    return await wallet_response(db, user.id, limit)
