"""Purchase flows: price a purchase and open its payment intent."""
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay.auth.rbac import CallerContext
from ipspay.config import settings
from ipspay.errors import InvalidPurchaseError
from ipspay.models.payment_intent import PaymentIntent, PaymentPurpose
from ipspay.services.ledger_service import LedgerService
from ipspay.services.plan_service import PlanService
from ipspay.services.settings_service import SettingsService

logger = structlog.get_logger(__name__)


def purpose_text(base: str) -> str:
    """Purpose text for QR field S, suffixed with the site label."""
    if settings.ips_site_label:
        return f"{base} - {settings.ips_site_label}"
    return base


class PurchaseService:
    """Service turning purchase requests into payment intents."""

    def __init__(
        self,
        db: AsyncSession,
        ledger: Optional[LedgerService] = None,
        settings_service: Optional[SettingsService] = None,
    ):
        """Initialize purchase service."""
        self.db = db
        self.ledger = ledger or LedgerService(db)
        self.settings_service = settings_service or SettingsService(db)
        self.plans = PlanService(db)

    async def buy_subscription(self, caller: CallerContext, plan_code: str) -> PaymentIntent:
        """
        Open a payment for one period of a subscription plan.

        Raises:
            PlanNotFoundError: If the plan is unknown or inactive
            InvalidPurchaseError: If the plan is free
        """
        plan = await self.plans.get_active_plan(plan_code)
        if plan.price_monthly <= 0:
            raise InvalidPurchaseError(f"Plan {plan.code} is free and needs no payment")

        return await self.ledger.open(
            caller,
            PaymentPurpose.SUBSCRIPTION,
            amount=plan.price_monthly,
            description=purpose_text(f"Pretplata {plan.name}"),
            related_entity_id=plan.code,
            credits=plan.credits_per_month,
        )

    async def buy_topup(self, caller: CallerContext, amount: int) -> PaymentIntent:
        """
        Open a payment for a credit top-up.

        Credits granted are ``amount // TOPUP_RSD_PER_CREDIT`` at the current
        rate and are stored on the intent, so a later rate change does not
        alter what this payment buys.

        Raises:
            InvalidPurchaseError: If the amount buys no credits
        """
        per_credit = await self.settings_service.rsd_per_credit()
        credits = amount // per_credit if per_credit > 0 else 0
        if credits < 1:
            raise InvalidPurchaseError(f"Top-up of {amount} RSD is below the price of one credit ({per_credit} RSD)")

        logger.info("topup_priced", amount=amount, credits=credits, payer_id=caller.caller_id)
        return await self.ledger.open(
            caller,
            PaymentPurpose.TOPUP,
            amount=amount,
            description=purpose_text(f"Dopuna {credits} kredita"),
            credits=credits,
        )

    async def buy_contact_reveal(self, caller: CallerContext, match_id: str) -> PaymentIntent:
        """Open a payment to reveal a match's contact details."""
        self._require_related(match_id, "match_id")
        return await self.ledger.open(
            caller,
            PaymentPurpose.CONTACT_REVEAL,
            amount=await self.settings_service.contact_reveal_price(),
            description=purpose_text("Otkrivanje kontakta"),
            related_entity_id=match_id,
        )

    async def buy_priority_listing(self, caller: CallerContext, listing_id: str) -> PaymentIntent:
        """Open a payment to promote a listing to priority."""
        self._require_related(listing_id, "listing_id")
        return await self.ledger.open(
            caller,
            PaymentPurpose.PRIORITY_LISTING,
            amount=await self.settings_service.priority_listing_price(),
            description=purpose_text("Prioritetni oglas"),
            related_entity_id=listing_id,
        )

    async def buy_urgent_listing(self, caller: CallerContext, listing_id: str) -> PaymentIntent:
        """Open a payment to mark a listing as urgent."""
        self._require_related(listing_id, "listing_id")
        return await self.ledger.open(
            caller,
            PaymentPurpose.URGENT_LISTING,
            amount=await self.settings_service.urgent_listing_price(),
            description=purpose_text("Hitan oglas"),
            related_entity_id=listing_id,
        )

    @staticmethod
    def _require_related(value: Optional[str], name: str) -> None:
        if not value or not value.strip():
            raise InvalidPurchaseError(f"{name} is required")
