"""Payment ledger: the only writer of payment intent state.

Every transition is a single conditional statement (a unique-constrained
INSERT or an UPDATE keyed on the expected current status), so concurrent
callers cannot interleave a read and a write on the same reference.
"""
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID, uuid4

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay import metrics
from ipspay.auth.rbac import CallerContext
from ipspay.config import settings
from ipspay.errors import (
    AlreadyTerminalError,
    AmountMismatchError,
    DuplicateReferenceError,
    InvalidPurchaseError,
    PaymentExpiredError,
    PaymentForbiddenError,
    PaymentNotFoundError,
)
from ipspay.models.payment_intent import (
    PaymentIntent,
    PaymentIntentStatus,
    PaymentPurpose,
    TERMINAL_STATUSES,
)
from ipspay.services.fulfillment_service import FulfillmentService
from ipspay.services.ips_qr import IpsQrEncoder
from ipspay.services.reference import derive_reference, verify_reference
from ipspay.utils.audit import record_payment_event, status_change

logger = structlog.get_logger(__name__)


def normalize_reference(reference_number: str) -> str:
    """References are compared upper-cased without surrounding whitespace."""
    return reference_number.strip().upper()


class LedgerService:
    """Service owning payment intent creation and state transitions."""

    def __init__(
        self,
        db: AsyncSession,
        encoder: Optional[IpsQrEncoder] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        ttl: Optional[timedelta] = None,
        fulfillment: Optional[FulfillmentService] = None,
    ):
        """
        Initialize the ledger.

        Args:
            db: Database session; the caller owns commit/rollback
            encoder: QR encoder for the recipient account (defaults to settings)
            clock: Source of naive-UTC "now"
            ttl: Pending lifetime (defaults to ``payment_ttl_hours``)
            fulfillment: Delivers purchases on PAID (defaults to one sharing the clock)
        """
        self.db = db
        self.encoder = encoder or IpsQrEncoder.from_settings()
        self.clock = clock
        self.ttl = ttl or timedelta(hours=settings.payment_ttl_hours)
        self.fulfillment = fulfillment or FulfillmentService(db, clock=clock)

    async def open(
        self,
        caller: CallerContext,
        purpose: PaymentPurpose,
        amount: int,
        description: str,
        related_entity_id: Optional[str] = None,
        payer_label: Optional[str] = None,
        credits: Optional[int] = None,
    ) -> PaymentIntent:
        """
        Open a pending payment intent for the caller.

        Args:
            caller: The payer
            purpose: What is being bought
            amount: Whole RSD, positive
            description: Purpose text shown in the QR payload
            related_entity_id: Plan code, match id or listing id being paid for
            payer_label: Optional payer name for QR field P
            credits: Credits the purchase grants once paid, fixed at open time

        Returns:
            The persisted PENDING intent

        Raises:
            InvalidPurchaseError: If the amount is not positive
            ReferenceTooLongError: If the reference does not fit the RO field
            DuplicateReferenceError: If the unique constraint rejects the
                reference; the session must be rolled back
        """
        if amount <= 0:
            raise InvalidPurchaseError(f"Amount must be positive, got {amount}")

        now = self.clock()
        reference_number = derive_reference(caller.caller_id, purpose, now)

        intent = PaymentIntent(
            id=uuid4(),
            purpose=purpose,
            payer_id=caller.caller_id,
            amount=amount,
            currency="RSD",
            reference_number=reference_number,
            status=PaymentIntentStatus.PENDING,
            description=description,
            related_entity_id=related_entity_id,
            credits=credits,
            expires_at=now + self.ttl,
            created_at=now,
            updated_at=now,
        )
        intent.qr_payload = self.encoder.encode(intent, payer_label=payer_label)

        self.db.add(intent)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            logger.warning(
                "payment_reference_collision",
                reference_number=reference_number,
                payer_id=caller.caller_id,
            )
            raise DuplicateReferenceError(
                f"Reference {reference_number} already exists",
                reference_number=reference_number,
            ) from exc

        await record_payment_event(
            self.db,
            "intent.opened",
            payment_intent_id=intent.id,
            actor_id=caller.caller_id,
            changes={
                "status": {"old": None, "new": intent.status.value},
                "amount": amount,
                "purpose": purpose.value,
            },
            request_id=caller.request_id,
        )

        metrics.payment_intents_opened_total.labels(purpose=purpose.value).inc()
        metrics.payment_intent_amount_total.labels(purpose=purpose.value).inc(amount)
        logger.info(
            "payment_intent_opened",
            payment_id=str(intent.id),
            reference_number=reference_number,
            purpose=purpose.value,
            amount=amount,
            expires_at=intent.expires_at.isoformat(),
        )
        return intent

    async def _find_by_reference(self, reference_number: str) -> Optional[PaymentIntent]:
        result = await self.db.execute(
            select(PaymentIntent)
            .where(PaymentIntent.reference_number == reference_number)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _find_by_id(self, payment_id: UUID) -> Optional[PaymentIntent]:
        result = await self.db.execute(
            select(PaymentIntent)
            .where(PaymentIntent.id == payment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_reference(self, reference_number: str) -> PaymentIntent:
        """
        Get an intent by reference number.

        Raises:
            PaymentNotFoundError: If no intent carries the reference
        """
        reference_number = normalize_reference(reference_number)
        intent = await self._find_by_reference(reference_number)
        if intent is None:
            raise PaymentNotFoundError(
                f"Payment with reference {reference_number} not found",
                reference_number=reference_number,
            )
        return intent

    async def get_for_caller(self, caller: CallerContext, payment_id: UUID) -> PaymentIntent:
        """
        Get an intent by id, enforcing ownership.

        Raises:
            PaymentNotFoundError: If the intent does not exist
            PaymentForbiddenError: If the caller is neither payer nor admin
        """
        intent = await self._find_by_id(payment_id)
        if intent is None:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")
        if not caller.can_access(intent.payer_id):
            logger.warning(
                "payment_access_denied",
                payment_id=str(payment_id),
                caller_id=caller.caller_id,
            )
            raise PaymentForbiddenError(f"Payment {payment_id} belongs to another account")
        return intent

    async def mark_paid(
        self,
        caller: CallerContext,
        reference_number: str,
        observed_amount: int,
    ) -> PaymentIntent:
        """
        Record that a bank transfer with this reference arrived.

        The PENDING → PAID transition delivers the purchase in the same
        transaction. Safe to repeat: a second call with the same reference and
        amount returns the already PAID intent and delivers nothing.

        Args:
            caller: Operator performing reconciliation (admin capability)
            reference_number: Reference read from the bank statement
            observed_amount: Amount on the statement line, whole RSD

        Returns:
            The PAID intent

        Raises:
            PaymentForbiddenError: If the caller is not an admin
            PaymentNotFoundError: If no intent carries the reference
            AlreadyTerminalError: If the intent is EXPIRED, CANCELLED, or PAID
                with a different amount
            PaymentExpiredError: If the deadline passed, swept or not
            AmountMismatchError: If the amount differs; the intent stays PENDING
        """
        if not caller.is_admin:
            raise PaymentForbiddenError("Only operators can reconcile payments")

        reference_number = normalize_reference(reference_number)
        if not verify_reference(reference_number):
            metrics.payment_reconciliations_total.labels(outcome="not_found").inc()
            raise PaymentNotFoundError(
                f"Reference {reference_number} fails its check digits",
                reference_number=reference_number,
            )

        now = self.clock()
        result = await self.db.execute(
            update(PaymentIntent)
            .where(
                PaymentIntent.reference_number == reference_number,
                PaymentIntent.status == PaymentIntentStatus.PENDING,
                PaymentIntent.expires_at >= now,
                PaymentIntent.amount == observed_amount,
            )
            .values(
                status=PaymentIntentStatus.PAID,
                paid_at=now,
                verified_by=caller.caller_id,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        intent = await self._find_by_reference(reference_number)

        if result.rowcount == 1:
            await record_payment_event(
                self.db,
                "intent.paid",
                payment_intent_id=intent.id,
                actor_id=caller.caller_id,
                changes={**status_change(PaymentIntentStatus.PENDING, PaymentIntentStatus.PAID), "amount": observed_amount},
                request_id=caller.request_id,
            )
            await self.fulfillment.fulfill(intent, caller)
            metrics.payment_reconciliations_total.labels(outcome="paid").inc()
            logger.info(
                "payment_marked_paid",
                payment_id=str(intent.id),
                reference_number=reference_number,
                amount=observed_amount,
                verified_by=caller.caller_id,
            )
            return intent

        if intent is None:
            metrics.payment_reconciliations_total.labels(outcome="not_found").inc()
            raise PaymentNotFoundError(
                f"Payment with reference {reference_number} not found",
                reference_number=reference_number,
            )

        if intent.status == PaymentIntentStatus.PAID and intent.amount == observed_amount:
            metrics.payment_reconciliations_total.labels(outcome="already_paid").inc()
            logger.info(
                "payment_already_paid",
                payment_id=str(intent.id),
                reference_number=reference_number,
            )
            return intent

        if intent.status in TERMINAL_STATUSES:
            metrics.payment_reconciliations_total.labels(outcome="already_terminal").inc()
            raise AlreadyTerminalError(
                f"Payment {reference_number} is already {intent.status.value}",
                reference_number=reference_number,
            )

        if intent.is_expired(now):
            metrics.payment_reconciliations_total.labels(outcome="expired").inc()
            raise PaymentExpiredError(
                f"Payment {reference_number} expired at {intent.expires_at.isoformat()}",
                reference_number=reference_number,
            )

        if intent.amount != observed_amount:
            metrics.payment_reconciliations_total.labels(outcome="amount_mismatch").inc()
            logger.warning(
                "payment_amount_mismatch",
                payment_id=str(intent.id),
                reference_number=reference_number,
                expected=intent.amount,
                observed=observed_amount,
            )
            raise AmountMismatchError(
                f"Observed amount {observed_amount} does not match expected {intent.amount}",
                expected=intent.amount,
                observed=observed_amount,
                reference_number=reference_number,
            )

        # Row was PENDING, in time and matching, yet the update missed it:
        # another writer moved it between the two statements.
        raise AlreadyTerminalError(
            f"Payment {reference_number} changed concurrently; retry",
            reference_number=reference_number,
        )

    async def cancel(self, caller: CallerContext, payment_id: UUID) -> PaymentIntent:
        """
        Cancel a pending intent (payer or admin).

        Raises:
            PaymentNotFoundError, PaymentForbiddenError: As for ``get_for_caller``
            AlreadyTerminalError: If the intent is no longer PENDING
            PaymentExpiredError: If the deadline already passed
        """
        intent = await self.get_for_caller(caller, payment_id)

        now = self.clock()
        result = await self.db.execute(
            update(PaymentIntent)
            .where(
                PaymentIntent.id == payment_id,
                PaymentIntent.status == PaymentIntentStatus.PENDING,
                PaymentIntent.expires_at >= now,
            )
            .values(
                status=PaymentIntentStatus.CANCELLED,
                cancelled_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        intent = await self._find_by_id(payment_id)

        if result.rowcount != 1:
            if intent.status in TERMINAL_STATUSES:
                raise AlreadyTerminalError(f"Payment {payment_id} is already {intent.status.value}")
            raise PaymentExpiredError(f"Payment {payment_id} expired at {intent.expires_at.isoformat()}")

        await record_payment_event(
            self.db,
            "intent.cancelled",
            payment_intent_id=intent.id,
            actor_id=caller.caller_id,
            changes=status_change(PaymentIntentStatus.PENDING, PaymentIntentStatus.CANCELLED),
            request_id=caller.request_id,
        )
        metrics.payment_intents_cancelled_total.labels(purpose=intent.purpose.value).inc()
        logger.info("payment_intent_cancelled", payment_id=str(payment_id), caller_id=caller.caller_id)
        return intent

    async def sweep_expired(self) -> int:
        """
        Move every PENDING intent past its deadline to EXPIRED.

        Idempotent and safe alongside ``open``/``mark_paid``: it only touches
        rows that are still PENDING and already late.

        Returns:
            Number of intents expired by this run
        """
        now = self.clock()
        result = await self.db.execute(
            update(PaymentIntent)
            .where(
                PaymentIntent.status == PaymentIntentStatus.PENDING,
                PaymentIntent.expires_at < now,
            )
            .values(status=PaymentIntentStatus.EXPIRED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount

        if count:
            await record_payment_event(
                self.db,
                "intent.expired",
                changes={**status_change(PaymentIntentStatus.PENDING, PaymentIntentStatus.EXPIRED), "count": count},
            )
            metrics.payment_intents_expired_total.inc(count)
            logger.info("expired_payments_swept", count=count, cutoff=now.isoformat())

        return count

    async def list_for_payer(
        self,
        caller: CallerContext,
        status: Optional[PaymentIntentStatus] = None,
        limit: int = 50,
    ) -> List[PaymentIntent]:
        """
        The caller's own intents, newest first.

        Filtering by PENDING leaves out intents already past their deadline.
        """
        query = select(PaymentIntent).where(PaymentIntent.payer_id == caller.caller_id)
        if status:
            query = query.where(PaymentIntent.status == status)
            if status == PaymentIntentStatus.PENDING:
                query = query.where(PaymentIntent.expires_at >= self.clock())

        query = query.order_by(PaymentIntent.created_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_pending(self, caller: CallerContext, limit: int = 100) -> List[PaymentIntent]:
        """
        All pending, not yet late intents awaiting reconciliation (admin).

        Raises:
            PaymentForbiddenError: If the caller is not an admin
        """
        if not caller.is_admin:
            raise PaymentForbiddenError("Only operators can list pending payments")

        result = await self.db.execute(
            select(PaymentIntent)
            .where(
                PaymentIntent.status == PaymentIntentStatus.PENDING,
                PaymentIntent.expires_at >= self.clock(),
            )
            .order_by(PaymentIntent.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
