"""Credit balance built from top-up grants."""
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay.models.credit import CreditGrant

logger = structlog.get_logger(__name__)


class CreditService:
    """Service for granting credits and reading a payer's balance."""

    def __init__(self, db: AsyncSession):
        """Initialize credit service."""
        self.db = db

    async def grant(self, payer_id: str, credits: int, payment_intent_id: UUID, reason: str = "topup") -> CreditGrant:
        """
        Add credits to a payer's balance in the caller's transaction.

        Args:
            payer_id: Payer account identifier
            credits: Number of credits, positive
            payment_intent_id: The PAID intent that bought them
            reason: Why the credits were granted

        Returns:
            The flushed grant
        """
        grant = CreditGrant(
            payer_id=payer_id,
            credits=credits,
            reason=reason,
            payment_intent_id=payment_intent_id,
        )
        self.db.add(grant)
        await self.db.flush()

        logger.info("credits_granted", payer_id=payer_id, credits=credits, payment_intent_id=str(payment_intent_id))
        return grant

    async def balance(self, payer_id: str) -> int:
        """Total credits granted to the payer."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(CreditGrant.credits), 0)).where(CreditGrant.payer_id == payer_id)
        )
        return int(result.scalar_one())
