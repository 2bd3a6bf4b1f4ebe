"""Pydantic schemas for payment intents and purchase requests."""
from pydantic import BaseModel, Field, ConfigDict
from uuid import UUID
from datetime import datetime
from typing import Optional, List

from ipspay.models.payment_intent import PaymentIntentStatus, PaymentPurpose


class PaymentIntentResponse(BaseModel):
    """Schema for payment intent response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    purpose: PaymentPurpose
    payer_id: str
    amount: int = Field(..., description="Amount in whole RSD")
    currency: str
    reference_number: str
    status: PaymentIntentStatus = Field(..., description="Stored ledger status")
    effective_status: PaymentIntentStatus = Field(
        ..., description="Status as of the response: pending intents past their deadline read as expired"
    )
    description: str
    related_entity_id: Optional[str] = None
    credits: Optional[int] = Field(default=None, description="Credits granted once paid")
    expires_at: datetime
    paid_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_intent(cls, intent, now: datetime) -> "PaymentIntentResponse":
        """Response with ``effective_status`` evaluated at ``now`` rather than the wall clock."""
        return cls.model_validate(intent).model_copy(update={"effective_status": intent.status_at(now)})


class PaymentIntentList(BaseModel):
    """Schema for a list of payment intents."""

    items: List[PaymentIntentResponse]
    total: int


class OpenPaymentResponse(BaseModel):
    """What the client needs to display a payment request."""

    payment_id: UUID
    reference_number: str
    amount: int
    currency: str = "RSD"
    expires_at: datetime
    qr_code: str = Field(..., description="PNG data URL of the IPS QR code")
    qr_text: str = Field(..., description="Raw IPS QR text payload")


class SubscriptionPurchase(BaseModel):
    """Schema for buying a subscription month."""

    plan_code: str = Field(..., min_length=1, max_length=32)


class TopupPurchase(BaseModel):
    """Schema for buying credits."""

    amount: int = Field(..., gt=0, le=1_000_000, description="Amount in whole RSD")


class ContactRevealPurchase(BaseModel):
    """Schema for buying a contact reveal."""

    match_id: str = Field(..., min_length=1)


class ListingPurchase(BaseModel):
    """Schema for priority or urgent listing purchases."""

    listing_id: str = Field(..., min_length=1)


class PaymentVerification(BaseModel):
    """Bank statement line observed by an operator."""

    reference_number: str = Field(..., min_length=3, max_length=64)
    amount: int = Field(..., gt=0, description="Amount on the statement line, whole RSD")


class SweepResult(BaseModel):
    """Schema for an expiry sweep run."""

    expired: int
