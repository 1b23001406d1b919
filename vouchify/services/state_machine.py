"""
Transaction status machine.

Every status change on a stored Transaction goes through `transition()`,
which checks the move against ALLOWED_TRANSITIONS and raises
InvalidTransitionError (carrying the current and attempted status) for
anything else. New transactions are checked with
`assert_transition(None, status)`, `None` standing for a transaction that
does not exist yet.

    (new)                      -> pending | pending_admin_confirmation | completed
    pending                    -> pending_admin_confirmation | paid | completed | failed
    pending_admin_confirmation -> completed | failed
    paid                       -> completed | refunded | failed
    completed                  -> refunded
    refunded, failed           -> (terminal)
"""

import logging

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.exceptions import InvalidTransitionError
from vouchify.models.transaction import Transaction

log = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[str | None, frozenset[str]] = {
    None: frozenset({"pending", "pending_admin_confirmation", "completed"}),
    "pending": frozenset({"pending_admin_confirmation", "paid", "completed", "failed"}),
    "pending_admin_confirmation": frozenset({"completed", "failed"}),
    "paid": frozenset({"completed", "refunded", "failed"}),
    "completed": frozenset({"refunded"}),
    "refunded": frozenset(),
    "failed": frozenset(),
}

# Statuses in which the buyer has paid and may see the scratch code
SETTLED_STATUSES = frozenset({"paid", "completed"})

# Statuses still holding a reserved voucher unit awaiting payment
OPEN_STATUSES = frozenset({"pending", "pending_admin_confirmation"})

# Statuses that count against a buyer's per-voucher purchase limit
ACTIVE_STATUSES = OPEN_STATUSES | SETTLED_STATUSES

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if status and not targets
)


def assert_transition(current: str | None, attempted: str) -> None:
    if attempted not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current, attempted)


async def transition(db: AsyncSession, txn: Transaction, attempted: str) -> None:
    """
    Move a stored transaction to a new status.

    The write is conditional on the status the caller loaded, so when two
    admins act on the same transaction at once only the first succeeds
    and the second gets InvalidTransitionError with the status it lost to.
    Side effects (payouts, quantity release) must only run after this
    returns.
    """
    current = txn.status
    assert_transition(current, attempted)

    result = await db.execute(
        update(Transaction)
        .where(Transaction.id == txn.id, Transaction.status == current)
        .values(status=attempted)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        await db.refresh(txn, ["status"])
        raise InvalidTransitionError(txn.status, attempted)

    await db.refresh(txn, ["status", "updated_at"])
    log.info("Transaction %s: %s -> %s", txn.id, current, attempted)
