"""Delivers what a PAID intent bought, inside the reconciling transaction.

The ledger calls ``fulfill`` only for the PENDING → PAID transition it just
made, so an idempotent repeat of ``mark_paid`` never delivers twice.
Contact reveals and listing promotions are owned by other services; for
those the audit event is the delivery record they consume.
"""
from datetime import datetime
from typing import Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay import metrics
from ipspay.auth.rbac import CallerContext
from ipspay.models.payment_intent import PaymentIntent, PaymentPurpose
from ipspay.services.credit_service import CreditService
from ipspay.services.subscription_service import SubscriptionService
from ipspay.utils.audit import record_payment_event

logger = structlog.get_logger(__name__)


class FulfillmentService:
    """Service turning PAID intents into subscriptions, credits and delivery events."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = datetime.utcnow):
        """Initialize fulfillment service."""
        self.db = db
        self.subscriptions = SubscriptionService(db, clock=clock)
        self.credits = CreditService(db)

    async def fulfill(self, intent: PaymentIntent, caller: CallerContext) -> dict:
        """
        Deliver the purchase of a freshly PAID intent.

        Args:
            intent: The intent just moved to PAID
            caller: Operator who reconciled it

        Returns:
            What was delivered, as recorded in the ``intent.fulfilled`` event
        """
        delivered = {
            "purpose": intent.purpose.value,
            "related_entity_id": intent.related_entity_id,
        }

        if intent.purpose == PaymentPurpose.SUBSCRIPTION:
            if not intent.related_entity_id:
                logger.warning("subscription_intent_without_plan", payment_id=str(intent.id))
                return delivered
            subscription = await self.subscriptions.activate(intent)
            delivered["subscription_id"] = str(subscription.id)
            delivered["period_end"] = subscription.current_period_end.isoformat()

        elif intent.purpose == PaymentPurpose.TOPUP:
            if not intent.credits:
                logger.warning("topup_intent_without_credits", payment_id=str(intent.id))
                return delivered
            await self.credits.grant(intent.payer_id, intent.credits, payment_intent_id=intent.id)
            delivered["credits"] = intent.credits

        await record_payment_event(
            self.db,
            "intent.fulfilled",
            payment_intent_id=intent.id,
            actor_id=caller.caller_id,
            changes=delivered,
            request_id=caller.request_id,
        )
        metrics.payment_fulfillments_total.labels(purpose=intent.purpose.value).inc()
        logger.info("payment_fulfilled", payment_id=str(intent.id), **delivered)
        return delivered
