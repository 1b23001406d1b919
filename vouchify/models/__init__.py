"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all runs
  2. Other modules can import from vouchify.models directly
"""

from vouchify.models.user import User, UserRole  # noqa: F401
from vouchify.models.voucher import Voucher  # noqa: F401
from vouchify.models.transaction import Transaction  # noqa: F401
from vouchify.models.payout import Payout, PayoutQuery  # noqa: F401
from vouchify.models.wallet import Wallet, WalletEntry  # noqa: F401
from vouchify.models.notification import Notification  # noqa: F401
from vouchify.models.review import Review  # noqa: F401
