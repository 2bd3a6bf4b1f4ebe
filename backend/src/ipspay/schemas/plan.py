"""Pydantic schemas for subscription plans."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class SubscriptionPlanResponse(BaseModel):
    """Schema for a subscription plan in the public catalog."""

    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    description: Optional[str] = None
    price_monthly: int = Field(..., description="Monthly price in whole RSD")
    credits_per_month: int
    display_order: int
