"""Audit trail helpers for payment intent state changes."""
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay.models.payment_event import PaymentEvent

logger = structlog.get_logger(__name__)

SYSTEM_ACTOR = "system"


async def record_payment_event(
    db: AsyncSession,
    event_type: str,
    payment_intent_id: Optional[UUID] = None,
    actor_id: Optional[str] = None,
    changes: Optional[dict] = None,
    request_id: Optional[str] = None,
) -> PaymentEvent:
    """
    Append an audit entry in the caller's transaction.

    Args:
        db: Database session
        event_type: Event name (intent.opened, intent.paid, intent.cancelled, intent.expired)
        payment_intent_id: Intent UUID, or None for bulk events
        actor_id: Caller who triggered the change
        changes: Dictionary of changes {field: {old: X, new: Y}}
        request_id: Request correlation ID

    Returns:
        The flushed event row
    """
    event = PaymentEvent(
        payment_intent_id=payment_intent_id,
        event_type=event_type,
        actor_id=actor_id or SYSTEM_ACTOR,
        changes=changes or {},
        request_id=request_id,
    )

    db.add(event)
    await db.flush()

    logger.info(
        "payment_event_recorded",
        event_type=event_type,
        payment_intent_id=str(payment_intent_id) if payment_intent_id else None,
        actor_id=event.actor_id,
    )
    return event


def status_change(old, new) -> dict:
    """Changes document for a status transition."""
    return {"status": {"old": getattr(old, "value", old), "new": getattr(new, "value", new)}}
