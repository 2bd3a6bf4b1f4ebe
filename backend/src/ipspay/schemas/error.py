"""Structured error response schemas."""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(default=None, description="Field that caused the error (for validation errors)")
    value: Any | None = Field(default=None, description="Invalid value (for validation errors)")


class ErrorResponse(BaseModel):
    """Standard error response structure.

    This provides consistent error responses across the API with:
    - Machine-readable error codes
    - Human-readable messages
    - Remediation hints
    - Request tracing information
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "AmountMismatch",
                "message": "Observed amount 25 does not match expected 30",
                "details": [
                    {
                        "code": "amount_mismatch",
                        "message": "Observed amount 25 does not match expected 30",
                    }
                ],
                "remediation": "Compare the bank statement line with the payment amount; the payment stays pending.",
                "request_id": "req_1234567890",
                "timestamp": "2026-01-15T10:30:00Z",
            }
        }
    )

    error: str = Field(..., description="Error type (e.g., 'ValidationError', 'NotFound', 'Forbidden')")
    message: str = Field(..., description="Primary error message")
    details: list[ErrorDetail] | None = Field(
        default=None, description="Detailed error information (for validation errors)"
    )
    remediation: str | None = Field(default=None, description="Suggestion for fixing the error")
    request_id: str | None = Field(default=None, description="Request ID for tracing")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")


# Error codes enum for consistency
class ErrorCode:
    """Standard error codes used across the API."""

    # Validation errors (400/422)
    INVALID_AMOUNT = "invalid_amount"
    INVALID_UUID = "invalid_uuid"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_ENUM_VALUE = "invalid_enum_value"
    INVALID_PURCHASE = "invalid_purchase"

    # Ledger errors
    DUPLICATE_RESOURCE = "duplicate_resource"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    PAYMENT_ALREADY_TERMINAL = "payment_already_terminal"
    PAYMENT_EXPIRED = "payment_expired"
    AMOUNT_MISMATCH = "amount_mismatch"
    REFERENCE_TOO_LONG = "reference_too_long"

    # Not found errors (404)
    PAYMENT_NOT_FOUND = "payment_not_found"
    PLAN_NOT_FOUND = "plan_not_found"
    SETTING_NOT_FOUND = "setting_not_found"

    # Authorization errors (403)
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"

    # External service errors (503)
    DATABASE_ERROR = "database_error"

    # Internal errors (500)
    INTERNAL_ERROR = "internal_error"


# Remediation hints for common errors
REMEDIATION_HINTS = {
    ErrorCode.INVALID_AMOUNT: "Provide a positive whole amount in RSD",
    ErrorCode.PAYMENT_NOT_FOUND: "Verify the payment ID or reference number is correct",
    ErrorCode.PLAN_NOT_FOUND: "Use a plan code from GET /v1/payments/plans",
    ErrorCode.PAYMENT_ALREADY_TERMINAL: "The payment is no longer pending. Open a new payment instead.",
    ErrorCode.PAYMENT_EXPIRED: "The payment deadline passed. Open a new payment and pay it before it expires.",
    ErrorCode.AMOUNT_MISMATCH: "Compare the bank statement line with the payment amount; the payment stays pending.",
    ErrorCode.DUPLICATE_RESOURCE: "Retry the request; a new reference number will be generated.",
    ErrorCode.REFERENCE_TOO_LONG: "Increase IPS_REFERENCE_MAX_LENGTH or shorten the reference model.",
    ErrorCode.DATABASE_ERROR: "Database temporarily unavailable. Please try again in a few moments.",
}
