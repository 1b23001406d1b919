"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like SoldOutError)
without importing HTTP concepts. The handler registered here translates
them into HTTP responses with a consistent body:

    {"detail": "human readable message", "error_type": "stable_code", ...}

Each exception class declares its own status_code and error_type, and may
add extra fields through `extra()`.

Exception hierarchy:
    VouchifyError (base)
    ├── Lookups:      VoucherNotFoundError, TransactionNotFoundError,
    │                 PayoutNotFoundError, NotificationNotFoundError
    ├── Availability: VoucherNotAvailableError, VoucherExpiredError,
    │                 SoldOutError, PurchaseLimitExceededError,
    │                 SelfPurchaseForbiddenError
    ├── Lifecycle:    InvalidTransitionError, PaymentNotVerifiedError,
    │                 VoucherInUseError, InvalidVoucherStateError,
    │                 PayoutAlreadyProcessedError
    ├── Listing:      DuplicateScratchCodeError, InvalidScratchCodeError,
    │                 InvalidPricingError
    ├── Money:        InsufficientFundsError
    ├── Access:       UnauthorizedAccessError, DuplicateEmailError,
    │                 InvalidCredentialsError
    └── Secrets:      SecretCodecError
                      ├── ConfigurationError
                      ├── FormatError
                      └── IntegrityError
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class VouchifyError(Exception):
    """Base exception for all Vouchify domain errors."""

    status_code: int = 400
    error_type: str = "error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)

    def extra(self) -> dict:
        """Additional fields merged into the JSON error body."""
        return {}


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

class UserNotFoundError(VouchifyError):
    status_code = 404
    error_type = "not_found"

    def __init__(self, user_id: uuid.UUID):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class VoucherNotFoundError(VouchifyError):
    status_code = 404
    error_type = "not_found"

    def __init__(self, voucher_id: uuid.UUID):
        self.voucher_id = voucher_id
        super().__init__(f"Voucher {voucher_id} not found")


class TransactionNotFoundError(VouchifyError):
    status_code = 404
    error_type = "not_found"

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class PayoutNotFoundError(VouchifyError):
    status_code = 404
    error_type = "not_found"

    def __init__(self, payout_id: uuid.UUID):
        self.payout_id = payout_id
        super().__init__(f"Payout {payout_id} not found")


class NotificationNotFoundError(VouchifyError):
    status_code = 404
    error_type = "not_found"

    def __init__(self, notification_id: uuid.UUID):
        self.notification_id = notification_id
        super().__init__(f"Notification {notification_id} not found")


# ---------------------------------------------------------------------------
# Availability (checked in this order at purchase time)
# ---------------------------------------------------------------------------

class VoucherNotAvailableError(VouchifyError):
    """The voucher is not published, not approved, or deactivated."""

    status_code = 409
    error_type = "not_available"

    def __init__(self, voucher_id: uuid.UUID, status: str):
        self.voucher_id = voucher_id
        self.status = status
        super().__init__(f"Voucher is not available for purchase (status: {status})")


class VoucherExpiredError(VouchifyError):
    status_code = 409
    error_type = "expired"

    def __init__(self, voucher_id: uuid.UUID):
        self.voucher_id = voucher_id
        super().__init__("Voucher has expired")


class SoldOutError(VouchifyError):
    status_code = 409
    error_type = "sold_out"

    def __init__(self, voucher_id: uuid.UUID):
        self.voucher_id = voucher_id
        super().__init__("Voucher is sold out")


class PurchaseLimitExceededError(VouchifyError):
    status_code = 409
    error_type = "purchase_limit_exceeded"

    def __init__(self, voucher_id: uuid.UUID, limit: int):
        self.voucher_id = voucher_id
        self.limit = limit
        super().__init__(f"Purchase limit of {limit} per user reached for this voucher")

    def extra(self) -> dict:
        return {"limit_per_user": self.limit}


class SelfPurchaseForbiddenError(VouchifyError):
    status_code = 403
    error_type = "self_purchase_forbidden"

    def __init__(self):
        super().__init__("You cannot purchase your own voucher")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class InvalidTransitionError(VouchifyError):
    """
    Raised when a transaction status change is not in the allowed table.

    Attributes:
        current_status: The status the transaction is in now.
        attempted_status: The status the caller tried to move it to.
    """

    status_code = 409
    error_type = "invalid_transition"

    def __init__(self, current_status: str | None, attempted_status: str):
        self.current_status = current_status
        self.attempted_status = attempted_status
        super().__init__(
            f"Cannot move transaction from {current_status or 'new'} to {attempted_status}"
        )

    def extra(self) -> dict:
        return {
            "current_status": self.current_status,
            "attempted_status": self.attempted_status,
        }


class PaymentNotVerifiedError(VouchifyError):
    status_code = 409
    error_type = "payment_not_verified"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Payment not verified yet (status: {status})")


class VoucherInUseError(VouchifyError):
    status_code = 409
    error_type = "voucher_in_use"

    def __init__(self, voucher_id: uuid.UUID, detail: str = "Voucher has transactions and cannot be deleted"):
        self.voucher_id = voucher_id
        super().__init__(detail)


class StockChangedError(VouchifyError):
    """A seller's quantity edit lost to a sale or release that landed first."""

    status_code = 409
    error_type = "stock_changed"

    def __init__(self, voucher_id: uuid.UUID, loaded_quantity: int):
        self.voucher_id = voucher_id
        self.loaded_quantity = loaded_quantity
        super().__init__("Voucher stock changed while editing; reload and try again")


class InvalidVoucherStateError(VouchifyError):
    """A listing lifecycle action (publish, verify, edit) was attempted from the wrong status."""

    status_code = 409
    error_type = "invalid_voucher_state"

    def __init__(self, voucher_id: uuid.UUID, status: str, action: str):
        self.voucher_id = voucher_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} a voucher in status {status}")

    def extra(self) -> dict:
        return {"current_status": self.status}


class PayoutAlreadyProcessedError(VouchifyError):
    status_code = 409
    error_type = "payout_already_processed"

    def __init__(self, payout_id: uuid.UUID, status: str):
        self.payout_id = payout_id
        self.status = status
        super().__init__(f"Payout already processed (status: {status})")


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class DuplicateScratchCodeError(VouchifyError):
    status_code = 409
    error_type = "duplicate_scratch_code"

    def __init__(self):
        super().__init__("This voucher code is already listed on Vouchify")


class InvalidScratchCodeError(VouchifyError):
    status_code = 422
    error_type = "invalid_scratch_code"


class InvalidPricingError(VouchifyError):
    """Prices or fee rates that cannot form a valid breakdown."""

    status_code = 422
    error_type = "invalid_pricing"


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------

class InsufficientFundsError(VouchifyError):
    """
    Raised when a wallet debit would cause a negative balance.

    Attributes:
        user_id: The wallet owner.
        requested_cents: The amount the user tried to debit.
        available_cents: The current wallet balance.
    """

    status_code = 422
    error_type = "insufficient_funds"

    def __init__(self, user_id: uuid.UUID, requested_cents: int, available_cents: int):
        self.user_id = user_id
        self.requested_cents = requested_cents
        self.available_cents = available_cents
        super().__init__(
            f"Insufficient wallet balance: requested {requested_cents}, "
            f"available {available_cents}"
        )

    def extra(self) -> dict:
        return {
            "requested_cents": self.requested_cents,
            "available_cents": self.available_cents,
        }


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------

class ReviewNotAllowedError(VouchifyError):
    """Only a completed purchase can be reviewed."""

    status_code = 409
    error_type = "review_not_allowed"

    def __init__(self, transaction_id: uuid.UUID, status: str):
        self.transaction_id = transaction_id
        self.status = status
        super().__init__(f"Only completed purchases can be reviewed (this one is {status})")

    def extra(self) -> dict:
        return {"current_status": self.status}


class DuplicateReviewError(VouchifyError):
    status_code = 409
    error_type = "duplicate_review"

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__("This purchase has already been reviewed")


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------

class UnauthorizedAccessError(VouchifyError):
    """Raised when a user attempts to access a resource they don't own."""

    status_code = 403
    error_type = "unauthorized_access"

    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(detail)


class DuplicateEmailError(VouchifyError):
    status_code = 409
    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class InvalidCredentialsError(VouchifyError):
    status_code = 401
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid email or password")


# ---------------------------------------------------------------------------
# Secret codec
# ---------------------------------------------------------------------------

class SecretCodecError(VouchifyError):
    """Base for scratch code encryption failures. Always a server-side fault."""

    status_code = 500
    error_type = "secret_error"


class ConfigurationError(SecretCodecError):
    """The encryption key is missing or malformed."""

    error_type = "configuration"


class FormatError(SecretCodecError):
    """A stored ciphertext blob is too short or not valid hex."""

    error_type = "secret_format"


class IntegrityError(SecretCodecError):
    """A stored ciphertext failed authentication (tampered or corrupted)."""

    error_type = "secret_integrity"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the domain exception handler with the FastAPI application.

    Every VouchifyError subclass is rendered by the same handler, so adding
    a new error type only needs a status_code and error_type on the class.
    """

    @app.exception_handler(VouchifyError)
    async def vouchify_error_handler(
        request: Request, exc: VouchifyError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type, **exc.extra()},
        )
