"""Payment intent model: one ledger row per purchase awaiting a bank transfer."""
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, Enum as SQLEnum, Index
import enum

from ipspay.models.base import Base


class PaymentPurpose(enum.Enum):
    """What the payer is buying."""

    SUBSCRIPTION = "subscription"
    TOPUP = "topup"
    CONTACT_REVEAL = "contact_reveal"
    PRIORITY_LISTING = "priority_listing"
    URGENT_LISTING = "urgent_listing"


class PaymentIntentStatus(enum.Enum):
    """Payment intent status. Only PENDING has outgoing transitions."""

    PENDING = "pending"
    PAID = "paid"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {PaymentIntentStatus.PAID, PaymentIntentStatus.EXPIRED, PaymentIntentStatus.CANCELLED}
)


class PaymentIntent(Base):
    """
    Pending-or-resolved purchase paid by IPS bank transfer.

    The reference number is what the payer types (or scans) into the transfer
    memo and what reconciliation matches against. Rows are never deleted.
    """

    __tablename__ = "payment_intents"

    purpose = Column(SQLEnum(PaymentPurpose), nullable=False, index=True)
    payer_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # Whole RSD
    currency = Column(String(3), nullable=False, default="RSD")
    reference_number = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(SQLEnum(PaymentIntentStatus), nullable=False, default=PaymentIntentStatus.PENDING, index=True)
    description = Column(String, nullable=False)
    related_entity_id = Column(String, nullable=True)
    credits = Column(Integer, nullable=True)  # Credits granted once paid (top-ups and subscriptions)
    qr_payload = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    verified_by = Column(String, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_payment_intents_status_expires_at", "status", "expires_at"),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once the deadline has passed, whatever the stored status."""
        return (now or datetime.utcnow()) > self.expires_at

    def status_at(self, now: datetime) -> PaymentIntentStatus:
        """Status as seen at ``now``: a PENDING intent past its deadline reads as EXPIRED."""
        if self.status == PaymentIntentStatus.PENDING and self.is_expired(now):
            return PaymentIntentStatus.EXPIRED
        return self.status

    @property
    def effective_status(self) -> PaymentIntentStatus:
        """``status_at`` the wall clock. Services with their own clock use ``status_at``."""
        return self.status_at(datetime.utcnow())

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PaymentIntent(id={self.id}, reference={self.reference_number}, "
            f"status={self.status.value}, amount={self.amount})>"
        )
