"""Subscription model: a paid month of a plan, activated by reconciliation."""
from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, Integer, String, Uuid
import enum

from ipspay.models.base import Base


class SubscriptionStatus(enum.Enum):
    """Subscription lifecycle status. Lapsing is read from the period end."""

    ACTIVE = "active"
    REPLACED = "replaced"


class Subscription(Base):
    """
    Payer subscription to a plan for one billing period.

    Each PAID subscription payment creates one row. A newer payment replaces
    the payer's running subscription; renewing the same plan starts the new
    period where the old one ends.
    """

    __tablename__ = "subscriptions"

    payer_id = Column(String, nullable=False, index=True)
    plan_code = Column(String(32), nullable=False)
    plan_name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)  # Whole RSD actually paid
    credits_total = Column(Integer, nullable=False, default=0)
    credits_remaining = Column(Integer, nullable=False, default=0)
    status = Column(SQLEnum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE, index=True)
    current_period_start = Column(DateTime, nullable=False)
    current_period_end = Column(DateTime, nullable=False, index=True)
    payment_intent_id = Column(Uuid(as_uuid=True), ForeignKey("payment_intents.id"), nullable=False, unique=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Subscription(id={self.id}, payer_id={self.payer_id}, "
            f"plan={self.plan_code}, status={self.status.value})>"
        )
