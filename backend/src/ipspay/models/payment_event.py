"""Audit trail of payment intent state changes."""
from sqlalchemy import Column, String, Uuid, JSON

from ipspay.models.base import Base


class PaymentEvent(Base):
    """
    One row per payment intent state change.

    Kept for reconciliation disputes; never updated or deleted.
    """

    __tablename__ = "payment_events"

    payment_intent_id = Column(Uuid(as_uuid=True), nullable=True, index=True)  # NULL for bulk sweeps
    event_type = Column(String, nullable=False, index=True)  # intent.opened, intent.paid, ...
    actor_id = Column(String, nullable=True)  # Caller who triggered the change, "system" for workers
    changes = Column(JSON, nullable=False, default=dict)
    request_id = Column(String, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<PaymentEvent(event_type={self.event_type}, payment_intent_id={self.payment_intent_id})>"
