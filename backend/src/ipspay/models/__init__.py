"""SQLAlchemy ORM models for the IPS payments service."""
# Import all models here to ensure they are registered with Alembic

from ipspay.models.base import Base
from ipspay.models.payment_intent import (
    PaymentIntent,
    PaymentIntentStatus,
    PaymentPurpose,
    TERMINAL_STATUSES,
)
from ipspay.models.payment_event import PaymentEvent
from ipspay.models.plan import SubscriptionPlan
from ipspay.models.site_setting import SiteSetting
from ipspay.models.subscription import Subscription, SubscriptionStatus
from ipspay.models.credit import CreditGrant

__all__ = [
    "Base",
    "PaymentIntent",
    "PaymentIntentStatus",
    "PaymentPurpose",
    "TERMINAL_STATUSES",
    "PaymentEvent",
    "SubscriptionPlan",
    "SiteSetting",
    "Subscription",
    "SubscriptionStatus",
    "CreditGrant",
]
