"""Domain exceptions raised by payment services.

Each error carries the HTTP status and machine-readable code the API layer
renders; services never build HTTP responses themselves.
"""
from typing import Optional

from fastapi import status

from ipspay.schemas.error import ErrorCode


class ConfigurationError(RuntimeError):
    """Process-wide configuration is missing or malformed. Fatal at startup."""


class PaymentError(Exception):
    """Base class for payment ledger errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = ErrorCode.INVALID_STATE_TRANSITION
    error: str = "PaymentError"

    def __init__(self, message: str, reference_number: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reference_number = reference_number


class ReferenceTooLongError(PaymentError):
    """Derived reference does not fit the IPS RO field."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = ErrorCode.REFERENCE_TOO_LONG
    error = "ReferenceTooLong"


class AlreadyTerminalError(PaymentError):
    """The intent is no longer PENDING."""

    status_code = status.HTTP_409_CONFLICT
    code = ErrorCode.PAYMENT_ALREADY_TERMINAL
    error = "AlreadyTerminal"


class PaymentExpiredError(PaymentError):
    """The intent's deadline passed before it was reconciled."""

    status_code = status.HTTP_410_GONE
    code = ErrorCode.PAYMENT_EXPIRED
    error = "Expired"


class AmountMismatchError(PaymentError):
    """Observed transfer amount differs from the intent amount."""

    status_code = 422  # Unprocessable Content
    code = ErrorCode.AMOUNT_MISMATCH
    error = "AmountMismatch"

    def __init__(self, message: str, expected: int, observed: int, reference_number: Optional[str] = None):
        super().__init__(message, reference_number)
        self.expected = expected
        self.observed = observed


class PaymentNotFoundError(PaymentError):
    status_code = status.HTTP_404_NOT_FOUND
    code = ErrorCode.PAYMENT_NOT_FOUND
    error = "NotFound"


class PlanNotFoundError(PaymentError):
    status_code = status.HTTP_404_NOT_FOUND
    code = ErrorCode.PLAN_NOT_FOUND
    error = "NotFound"


class PaymentForbiddenError(PaymentError):
    """Caller is neither the payer nor an admin."""

    status_code = status.HTTP_403_FORBIDDEN
    code = ErrorCode.INSUFFICIENT_PERMISSIONS
    error = "Forbidden"


class DuplicateReferenceError(PaymentError):
    """Unique constraint on the reference number rejected the insert."""

    status_code = status.HTTP_409_CONFLICT
    code = ErrorCode.DUPLICATE_RESOURCE
    error = "DuplicateReference"


class InvalidPurchaseError(PaymentError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = ErrorCode.INVALID_PURCHASE
    error = "InvalidPurchase"
