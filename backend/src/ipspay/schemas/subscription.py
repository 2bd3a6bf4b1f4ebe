"""Pydantic schemas for payer subscriptions."""
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime
from typing import Optional

from ipspay.models.subscription import SubscriptionStatus


class SubscriptionResponse(BaseModel):
    """Schema for a payer subscription."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payer_id: str
    plan_code: str
    plan_name: str
    price: int = Field(..., description="Amount paid in whole RSD")
    credits_total: int
    credits_remaining: int
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    payment_intent_id: UUID


class CurrentSubscriptionResponse(BaseModel):
    """The caller's running subscription and top-up credit balance."""

    subscription: Optional[SubscriptionResponse] = None
    credit_balance: int = Field(..., description="Credits bought with top-ups")
