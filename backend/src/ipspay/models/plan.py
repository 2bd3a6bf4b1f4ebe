"""Subscription plan catalog used to price subscription purchases."""
from sqlalchemy import Column, String, Integer, Boolean, Text

from ipspay.models.base import Base


class SubscriptionPlan(Base):
    """
    Monthly subscription plan sold through IPS payments.

    Plans are addressed by their stable ``code`` (FREE, STARTER, PRO, ...).
    """

    __tablename__ = "subscription_plans"

    code = Column(String(32), nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price_monthly = Column(Integer, nullable=False)  # Whole RSD
    credits_per_month = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True, index=True)
    display_order = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        """String representation."""
        return f"<SubscriptionPlan(code={self.code}, price_monthly={self.price_monthly})>"
