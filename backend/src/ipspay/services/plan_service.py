"""Subscription plan catalog queries."""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay.errors import PlanNotFoundError
from ipspay.models.plan import SubscriptionPlan


class PlanService:
    """Read access to the subscription plan catalog."""

    def __init__(self, db: AsyncSession):
        """Initialize plan service."""
        self.db = db

    async def list_active_plans(self) -> List[SubscriptionPlan]:
        """Active plans in display order."""
        result = await self.db.execute(
            select(SubscriptionPlan)
            .where(SubscriptionPlan.active.is_(True))
            .order_by(SubscriptionPlan.display_order, SubscriptionPlan.code)
        )
        return list(result.scalars().all())

    async def get_active_plan(self, code: str) -> SubscriptionPlan:
        """
        Get an active plan by code (case-insensitive).

        Raises:
            PlanNotFoundError: If the plan is unknown or inactive
        """
        result = await self.db.execute(
            select(SubscriptionPlan).where(
                SubscriptionPlan.code == code.strip().upper(),
                SubscriptionPlan.active.is_(True),
            )
        )
        plan = result.scalar_one_or_none()
        if plan is None:
            raise PlanNotFoundError(f"Plan {code} not found")
        return plan

    async def find_plan(self, code: str) -> Optional[SubscriptionPlan]:
        """A plan by code whether or not it is still sold."""
        result = await self.db.execute(
            select(SubscriptionPlan).where(SubscriptionPlan.code == code.strip().upper())
        )
        return result.scalar_one_or_none()
