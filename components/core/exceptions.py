"""Exception hierarchy for the debt service.

Every exception carries the HTTP status it maps to, a stable ``code`` and a
``context`` dict (field name, provided value, expected bounds, debt id) that
the API renders next to the message.
"""

from typing import Any, Dict


class DebtError(Exception):
    """Base exception for all debt service errors."""

    status_code = 400
    code = "debt_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, "context": self.context}


class DebtValidationError(DebtError):
    """Raised when debt fields are malformed or out of policy."""

    code = "validation_error"


class UnsupportedDebtTypeError(DebtValidationError):
    """Raised when an unrecognized debt type reaches validation or scheduling."""

    code = "unsupported_debt_type"


class DebtNotFoundError(DebtError):
    """Raised when a referenced debt does not exist."""

    status_code = 404
    code = "not_found"


class DebtAccessDeniedError(DebtError):
    """Raised when a debt belongs to a different household."""

    status_code = 403
    code = "forbidden"


class DebtPaymentError(DebtError):
    """Raised when a payment violates a business rule."""

    code = "payment_error"


class DuplicatePaymentError(DebtPaymentError):
    """Raised when a payment looks like a duplicate of an existing one."""

    code = "duplicate_payment"


class ConcurrentModificationError(DebtError):
    """Raised when a debt changed between read and write."""

    status_code = 409
    code = "concurrent_modification"
