"""Subscription activation for paid subscription intents."""
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay.models.payment_intent import PaymentIntent
from ipspay.models.subscription import Subscription, SubscriptionStatus
from ipspay.services.plan_service import PlanService

logger = structlog.get_logger(__name__)

SUBSCRIPTION_PERIOD = timedelta(days=30)


class SubscriptionService:
    """Service layer for payer subscriptions."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = datetime.utcnow):
        """Initialize subscription service."""
        self.db = db
        self.clock = clock

    async def get_current(self, payer_id: str, now: Optional[datetime] = None) -> Optional[Subscription]:
        """
        The payer's running subscription.

        Args:
            payer_id: Payer account identifier
            now: Point in time to evaluate (defaults to the service clock)

        Returns:
            The ACTIVE subscription whose period has not ended, or None
        """
        now = now or self.clock()
        result = await self.db.execute(
            select(Subscription)
            .where(
                Subscription.payer_id == payer_id,
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.current_period_end > now,
            )
            .order_by(Subscription.current_period_end.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def activate(self, intent: PaymentIntent) -> Subscription:
        """
        Start one period of the plan bought by a PAID subscription intent.

        A running subscription to the same plan is renewed: the new period
        starts at its end and its unused credits carry over. A running
        subscription to another plan is replaced from now on.

        Args:
            intent: PAID intent whose ``related_entity_id`` is the plan code

        Returns:
            The new ACTIVE subscription
        """
        now = self.clock()
        plan_code = intent.related_entity_id.strip().upper()
        plan = await PlanService(self.db).find_plan(plan_code)

        start = now
        carried_credits = 0
        current = await self.get_current(intent.payer_id, now)
        if current is not None:
            if current.plan_code == plan_code:
                start = current.current_period_end
                carried_credits = current.credits_remaining
            current.status = SubscriptionStatus.REPLACED
            current.updated_at = now

        credits = intent.credits or 0
        subscription = Subscription(
            payer_id=intent.payer_id,
            plan_code=plan_code,
            plan_name=plan.name if plan is not None else plan_code,
            price=intent.amount,
            credits_total=credits,
            credits_remaining=credits + carried_credits,
            status=SubscriptionStatus.ACTIVE,
            current_period_start=start,
            current_period_end=start + SUBSCRIPTION_PERIOD,
            payment_intent_id=intent.id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(subscription)
        await self.db.flush()

        logger.info(
            "subscription_activated",
            payer_id=intent.payer_id,
            plan_code=plan_code,
            period_end=subscription.current_period_end.isoformat(),
            replaced_id=str(current.id) if current is not None else None,
        )
        return subscription
