"""Pydantic schemas for API request/response validation."""

from ipspay.schemas.error import ErrorCode, ErrorDetail, ErrorResponse
from ipspay.schemas.payment import (
    ContactRevealPurchase,
    ListingPurchase,
    OpenPaymentResponse,
    PaymentIntentList,
    PaymentIntentResponse,
    PaymentVerification,
    SubscriptionPurchase,
    SweepResult,
    TopupPurchase,
)
from ipspay.schemas.plan import SubscriptionPlanResponse
from ipspay.schemas.setting import SiteSettingResponse, SiteSettingUpdate
from ipspay.schemas.subscription import CurrentSubscriptionResponse, SubscriptionResponse

__all__ = [
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "ContactRevealPurchase",
    "ListingPurchase",
    "OpenPaymentResponse",
    "PaymentIntentList",
    "PaymentIntentResponse",
    "PaymentVerification",
    "SubscriptionPurchase",
    "SweepResult",
    "TopupPurchase",
    "SubscriptionPlanResponse",
    "SiteSettingResponse",
    "SiteSettingUpdate",
    "CurrentSubscriptionResponse",
    "SubscriptionResponse",
]
