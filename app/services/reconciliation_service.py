import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ManualConfirmationNotAllowedError
from app.crud.payment_intent import payment_intent_crud
from app.crud.payment_webhook_event import payment_webhook_event_crud, PaymentWebhookEventCreate
from app.crud.subscription import subscription_crud
from app.models.payment_intent import PaymentIntent, PaymentIntentStatus
from app.models.subscription import Subscription
from app.services.plan_catalog import PlanCatalog, plan_catalog
from app.services.stripe_service import StripeService, stripe_service
from app.services.subscription_service import SubscriptionService, subscription_service
from app.utils.utils import utcnow

logger = logging.getLogger(__name__)

# Channels without a provider callback, settled from the payer-supplied reference
MANUAL_CONFIRMATION_CHANNEL = "upi"


class ReconcileOutcome(str, Enum):
    RECONCILED = "reconciled"
    FAILED = "failed"
    ALREADY_PROCESSED = "already_processed"
    NOT_FOUND = "not_found"
    UNKNOWN_PLAN = "unknown_plan"


@dataclass
class ReconcileResult:
    outcome: ReconcileOutcome
    intent: Optional[PaymentIntent] = None
    subscription: Optional[Subscription] = None

    @property
    def message(self) -> str:
        return {
            ReconcileOutcome.RECONCILED: "Payment verified, subscription activated",
            ReconcileOutcome.FAILED: "Payment marked as failed",
            ReconcileOutcome.ALREADY_PROCESSED: "Payment intent was already processed",
            ReconcileOutcome.NOT_FOUND: "Payment intent not found",
            ReconcileOutcome.UNKNOWN_PLAN: "Plan for this payment is no longer available",
        }[self.outcome]


class ReconciliationService:
    """Turns external payment confirmations into subscription transitions"""

    def __init__(
        self,
        catalog: PlanCatalog = plan_catalog,
        subscriptions: SubscriptionService = subscription_service,
        stripe: StripeService = stripe_service,
        max_attempts: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None
    ):
        self.catalog = catalog
        self.subscriptions = subscriptions
        self.stripe = stripe
        self.max_attempts = max_attempts or settings.reconcile_max_attempts
        self.retry_delay_seconds = (
            settings.reconcile_retry_delay_seconds if retry_delay_seconds is None else retry_delay_seconds
        )

    async def _load_intent(
        self,
        db: AsyncSession,
        intent_id: UUID,
        tenant_id: Optional[str]
    ) -> Optional[PaymentIntent]:
        intent = await payment_intent_crud.get(db, intent_id, raise_if_not_found=False)
        if intent is None:
            return None
        if tenant_id is not None and intent.tenant_id != tenant_id:
            return None
        return intent

    async def reconcile(
        self,
        db: AsyncSession,
        intent_id: UUID,
        external_reference: str,
        tenant_id: Optional[str] = None
    ) -> ReconcileResult:
        """
        Complete a pending intent and activate the subscription in one transaction.

        Safe to call any number of times for the same intent: only the call that
        moves the intent out of pending activates anything. Transient database
        errors roll back both writes and the whole step is retried.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._reconcile_once(db, intent_id, external_reference, tenant_id)
            except DBAPIError as e:
                await db.rollback()
                if isinstance(e, IntegrityError) or attempt >= self.max_attempts:
                    logger.error(f"Reconciliation of intent {intent_id} failed after {attempt} attempt(s): {e}")
                    raise
                logger.warning(f"Reconciliation of intent {intent_id} hit a database error, retrying ({attempt}/{self.max_attempts}): {e}")
                await asyncio.sleep(self.retry_delay_seconds * attempt)

    async def _reconcile_once(
        self,
        db: AsyncSession,
        intent_id: UUID,
        external_reference: str,
        tenant_id: Optional[str]
    ) -> ReconcileResult:
        intent = await self._load_intent(db, intent_id, tenant_id)
        if intent is None:
            logger.warning(f"Reconcile: payment intent {intent_id} not found")
            return ReconcileResult(ReconcileOutcome.NOT_FOUND)

        if intent.status != PaymentIntentStatus.PENDING:
            logger.info(f"Reconcile: intent {intent_id} already {intent.status.value}, ignoring duplicate confirmation")
            return ReconcileResult(ReconcileOutcome.ALREADY_PROCESSED, intent=intent)

        if not self.catalog.has_plan(intent.plan_id):
            # Left pending so it can be settled once product decides what a discontinued plan maps to
            logger.error(
                f"Reconcile: intent {intent_id} paid for plan '{intent.plan_id}' which is not in the catalog; "
                "subscription not activated"
            )
            return ReconcileResult(ReconcileOutcome.UNKNOWN_PLAN, intent=intent)

        plan = self.catalog.get_plan(intent.plan_id)
        intent_pk, intent_tenant_id = intent.id, intent.tenant_id
        now = utcnow()

        claimed = await payment_intent_crud.mark_completed(db, intent_pk, external_reference, now)
        if not claimed:
            await db.rollback()
            intent = await payment_intent_crud.get(db, intent_pk)
            logger.info(f"Reconcile: intent {intent_id} was settled concurrently ({intent.status.value})")
            return ReconcileResult(ReconcileOutcome.ALREADY_PROCESSED, intent=intent)

        await self.subscriptions.activate(
            db,
            intent_tenant_id,
            plan.plan_id,
            period_start=now,
            period_end=now + timedelta(days=plan.duration_days)
        )
        await db.commit()

        intent = await payment_intent_crud.get(db, intent_pk)
        subscription = await subscription_crud.get_by_tenant(db, intent_tenant_id)
        logger.info(
            f"Reconciled intent {intent_id} (ref={external_reference}) for tenant {intent.tenant_id}: "
            f"{plan.plan_id} active until {subscription.current_period_end.isoformat()}"
        )
        return ReconcileResult(ReconcileOutcome.RECONCILED, intent=intent, subscription=subscription)

    async def confirm_manually(
        self,
        db: AsyncSession,
        intent_id: UUID,
        external_reference: str,
        tenant_id: str
    ) -> ReconcileResult:
        """
        Payer-submitted confirmation (transaction id typed in after paying).

        Only UPI intents accept it, since UPI has no server-side callback here.
        Every accepted confirmation is logged for later audit against the bank
        statement.
        """
        intent = await self._load_intent(db, intent_id, tenant_id)
        if intent is not None and intent.channel != MANUAL_CONFIRMATION_CHANNEL:
            logger.warning(f"Rejected manual confirmation of {intent.channel} intent {intent_id} by tenant {tenant_id}")
            raise ManualConfirmationNotAllowedError(intent.channel)

        result = await self.reconcile(db, intent_id, external_reference, tenant_id=tenant_id)
        if result.outcome == ReconcileOutcome.RECONCILED:
            logger.warning(
                f"AUDIT manual UPI confirmation: intent {intent_id} tenant {tenant_id} "
                f"plan {result.intent.plan_id} amount {result.intent.amount} reference {external_reference}"
            )
        return result

    async def fail(
        self,
        db: AsyncSession,
        intent_id: UUID,
        reason: str,
        tenant_id: Optional[str] = None
    ) -> ReconcileResult:
        """Record a definite negative outcome. The subscription is never changed."""
        intent = await self._load_intent(db, intent_id, tenant_id)
        if intent is None:
            logger.warning(f"Fail: payment intent {intent_id} not found")
            return ReconcileResult(ReconcileOutcome.NOT_FOUND)

        if intent.status != PaymentIntentStatus.PENDING:
            logger.info(f"Fail: intent {intent_id} already {intent.status.value}, ignoring")
            return ReconcileResult(ReconcileOutcome.ALREADY_PROCESSED, intent=intent)

        failed = await payment_intent_crud.mark_failed(db, intent.id, reason, utcnow())
        intent = await payment_intent_crud.get(db, intent.id)
        if not failed:
            return ReconcileResult(ReconcileOutcome.ALREADY_PROCESSED, intent=intent)

        logger.info(f"Payment intent {intent_id} for tenant {intent.tenant_id} failed: {reason}")
        return ReconcileResult(ReconcileOutcome.FAILED, intent=intent)

    async def handle_stripe_event(self, db: AsyncSession, event: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a verified Stripe webhook event, skipping events already processed"""
        event_id = event.get("id")
        event_type = event.get("type", "")

        if event_id:
            existing = await payment_webhook_event_crud.get_by_event_id(db, event_id)
            if existing:
                logger.info(f"Stripe event {event_id} already processed ({existing.outcome})")
                return {"event_id": event_id, "outcome": existing.outcome, "duplicate": True}

        parsed = self.stripe.parse_checkout_event(event)
        intent_ref = parsed.get("intent_id")
        outcome = "ignored"

        if parsed["action"] != "ignored":
            try:
                intent_id = UUID(str(intent_ref))
            except ValueError:
                logger.warning(f"Stripe event {event_id} carries no usable intent id: {intent_ref!r}")
                intent_id = None

            if intent_id is not None:
                if parsed["action"] == "completed":
                    result = await self.reconcile(db, intent_id, parsed["external_reference"])
                else:
                    result = await self.fail(db, intent_id, parsed["reason"])
                outcome = result.outcome.value

        if event_id:
            try:
                await payment_webhook_event_crud.create(
                    db,
                    obj_in=PaymentWebhookEventCreate(
                        event_id=event_id,
                        provider="stripe",
                        event_type=event_type,
                        intent_id=str(intent_ref) if intent_ref else None,
                        outcome=outcome,
                        processed_at=utcnow()
                    )
                )
            except IntegrityError:
                # Concurrent redelivery recorded it first; the reconcile above was a no-op for one of them
                await db.rollback()
                logger.info(f"Stripe event {event_id} recorded concurrently")

        return {"event_id": event_id, "outcome": outcome, "duplicate": False}


# Create singleton instance
reconciliation_service = ReconciliationService()
