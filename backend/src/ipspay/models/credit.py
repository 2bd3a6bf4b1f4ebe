"""Credit grant model: credits bought with a top-up payment."""
from sqlalchemy import Column, ForeignKey, Integer, String, Uuid

from ipspay.models.base import Base


class CreditGrant(Base):
    """
    Credits added to a payer's balance by one PAID top-up.

    The balance is the sum of grants; one grant per payment intent at most.
    """

    __tablename__ = "credit_grants"

    payer_id = Column(String, nullable=False, index=True)
    credits = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)  # topup
    payment_intent_id = Column(Uuid(as_uuid=True), ForeignKey("payment_intents.id"), nullable=False, unique=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<CreditGrant(id={self.id}, payer_id={self.payer_id}, credits={self.credits})>"
