"""Payment endpoints: open IPS payments, check status, reconcile."""
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay.api.deps import get_caller, get_current_user, get_db
from ipspay.auth.rbac import CallerContext, Role, require_roles
from ipspay.models.payment_intent import PaymentIntent, PaymentIntentStatus
from ipspay.schemas.payment import (
    ContactRevealPurchase,
    ListingPurchase,
    OpenPaymentResponse,
    PaymentIntentList,
    PaymentIntentResponse,
    PaymentVerification,
    SubscriptionPurchase,
    SweepResult,
    TopupPurchase,
)
from ipspay.schemas.plan import SubscriptionPlanResponse
from ipspay.schemas.error import ErrorResponse
from ipspay.schemas.subscription import CurrentSubscriptionResponse, SubscriptionResponse
from ipspay.services.credit_service import CreditService
from ipspay.services.ips_qr import IpsQrEncoder
from ipspay.services.ledger_service import LedgerService
from ipspay.services.plan_service import PlanService
from ipspay.services.purchase_service import PurchaseService
from ipspay.services.subscription_service import SubscriptionService

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/payments",
    tags=["payments"],
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        410: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)


def _open_response(intent: PaymentIntent) -> OpenPaymentResponse:
    return OpenPaymentResponse(
        payment_id=intent.id,
        reference_number=intent.reference_number,
        amount=intent.amount,
        currency=intent.currency,
        expires_at=intent.expires_at,
        qr_code=IpsQrEncoder.render_png_data_url(intent.qr_payload),
        qr_text=intent.qr_payload,
    )


@router.get("/plans", response_model=List[SubscriptionPlanResponse])
async def list_plans(db: AsyncSession = Depends(get_db)) -> List[SubscriptionPlanResponse]:
    """List active subscription plans (public)."""
    plans = await PlanService(db).list_active_plans()
    return [SubscriptionPlanResponse.model_validate(p) for p in plans]


@router.post("/subscription", response_model=OpenPaymentResponse, status_code=status.HTTP_201_CREATED)
async def buy_subscription(
    body: SubscriptionPurchase,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> OpenPaymentResponse:
    """Open a payment for one month of the given plan."""
    intent = await PurchaseService(db).buy_subscription(caller, body.plan_code)
    await db.commit()
    return _open_response(intent)


@router.post("/topup", response_model=OpenPaymentResponse, status_code=status.HTTP_201_CREATED)
async def buy_topup(
    body: TopupPurchase,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> OpenPaymentResponse:
    """Open a payment for a credit top-up."""
    intent = await PurchaseService(db).buy_topup(caller, body.amount)
    await db.commit()
    return _open_response(intent)


@router.post("/contact-reveal", response_model=OpenPaymentResponse, status_code=status.HTTP_201_CREATED)
async def buy_contact_reveal(
    body: ContactRevealPurchase,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> OpenPaymentResponse:
    """Open a payment to reveal a match's contact details."""
    intent = await PurchaseService(db).buy_contact_reveal(caller, body.match_id)
    await db.commit()
    return _open_response(intent)


@router.post("/priority", response_model=OpenPaymentResponse, status_code=status.HTTP_201_CREATED)
async def buy_priority_listing(
    body: ListingPurchase,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> OpenPaymentResponse:
    """Open a payment for a priority listing."""
    intent = await PurchaseService(db).buy_priority_listing(caller, body.listing_id)
    await db.commit()
    return _open_response(intent)


@router.post("/urgent", response_model=OpenPaymentResponse, status_code=status.HTTP_201_CREATED)
async def buy_urgent_listing(
    body: ListingPurchase,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> OpenPaymentResponse:
    """Open a payment for an urgent listing."""
    intent = await PurchaseService(db).buy_urgent_listing(caller, body.listing_id)
    await db.commit()
    return _open_response(intent)


@router.get("/history", response_model=PaymentIntentList)
async def payment_history(
    status_filter: Optional[PaymentIntentStatus] = Query(None, alias="status", description="Filter by stored status"),
    limit: int = Query(50, ge=1, le=200),
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> PaymentIntentList:
    """
    The caller's payments, newest first.

    - **status**: pending, paid, expired or cancelled
    - **limit**: maximum number of results
    """
    ledger = LedgerService(db)
    intents = await ledger.list_for_payer(caller, status=status_filter, limit=limit)
    now = ledger.clock()
    return PaymentIntentList(
        items=[PaymentIntentResponse.from_intent(i, now) for i in intents],
        total=len(intents),
    )


@router.get("/subscription/current", response_model=CurrentSubscriptionResponse)
async def current_subscription(
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> CurrentSubscriptionResponse:
    """The caller's running subscription, if any, and top-up credit balance."""
    subscription = await SubscriptionService(db).get_current(caller.caller_id)
    return CurrentSubscriptionResponse(
        subscription=SubscriptionResponse.model_validate(subscription) if subscription else None,
        credit_balance=await CreditService(db).balance(caller.caller_id),
    )


@router.post("/verify", response_model=PaymentIntentResponse)
@require_roles(Role.ADMIN)
async def verify_payment(
    body: PaymentVerification,
    current_user: dict = Depends(get_current_user),
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> PaymentIntentResponse:
    """
    Reconcile a bank statement line against its payment (admin).

    The first successful call delivers the purchase (subscription period,
    top-up credits). Repeating it for an already paid payment with the same
    amount returns it unchanged and delivers nothing.
    """
    ledger = LedgerService(db)
    intent = await ledger.mark_paid(caller, body.reference_number, body.amount)
    await db.commit()
    return PaymentIntentResponse.from_intent(intent, ledger.clock())


@router.get("/admin/pending", response_model=PaymentIntentList)
@require_roles(Role.ADMIN)
async def list_pending_payments(
    limit: int = Query(100, ge=1, le=1000),
    current_user: dict = Depends(get_current_user),
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> PaymentIntentList:
    """Pending payments awaiting reconciliation (admin)."""
    ledger = LedgerService(db)
    intents = await ledger.list_pending(caller, limit=limit)
    now = ledger.clock()
    return PaymentIntentList(
        items=[PaymentIntentResponse.from_intent(i, now) for i in intents],
        total=len(intents),
    )


@router.post("/admin/sweep", response_model=SweepResult)
@require_roles(Role.ADMIN)
async def sweep_expired_payments(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SweepResult:
    """Expire overdue pending payments now instead of waiting for the worker (admin)."""
    expired = await LedgerService(db).sweep_expired()
    await db.commit()
    logger.info("manual_expiry_sweep", expired=expired, user_id=current_user.get("sub"))
    return SweepResult(expired=expired)


@router.get("/{payment_id}", response_model=PaymentIntentResponse)
async def get_payment_status(
    payment_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> PaymentIntentResponse:
    """Current state of a payment (payer or admin)."""
    ledger = LedgerService(db)
    intent = await ledger.get_for_caller(caller, payment_id)
    return PaymentIntentResponse.from_intent(intent, ledger.clock())


@router.post("/{payment_id}/cancel", response_model=PaymentIntentResponse)
async def cancel_payment(
    payment_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> PaymentIntentResponse:
    """Cancel a pending payment (payer or admin)."""
    ledger = LedgerService(db)
    intent = await ledger.cancel(caller, payment_id)
    await db.commit()
    return PaymentIntentResponse.from_intent(intent, ledger.clock())
