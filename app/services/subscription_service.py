import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AlreadyProvisionedError, NotFoundError
from app.crud.subscription import subscription_crud, SubscriptionCreate
from app.crud.usage_counter import usage_counter_crud
from app.models.subscription import Subscription, SubscriptionStatus
from app.schemas.billing import SubscriptionResponse, SubscriptionStatusResponse
from app.services.plan_catalog import PlanCatalog, plan_catalog
from app.utils.utils import utcnow, days_until

logger = logging.getLogger(__name__)

ENTITLED_STATUSES = (SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE)


class SubscriptionService:
    """Subscription state store: the only writer of the subscriptions table"""

    def __init__(self, catalog: PlanCatalog = plan_catalog):
        self.catalog = catalog

    @staticmethod
    def is_lapsed(subscription: Subscription, now: datetime) -> bool:
        if subscription.status == SubscriptionStatus.TRIAL:
            return subscription.trial_ends_at is None or now >= subscription.trial_ends_at
        if subscription.status == SubscriptionStatus.ACTIVE:
            return now >= subscription.current_period_end
        return False

    @staticmethod
    def is_entitled(subscription: Subscription) -> bool:
        return subscription.status in ENTITLED_STATUSES

    async def find_status(self, db: AsyncSession, tenant_id: str) -> Optional[Subscription]:
        """
        Read the tenant's subscription, applying lazy expiry first.
        Returns None when the tenant has never been provisioned.
        """
        subscription = await subscription_crud.get_by_tenant(db, tenant_id)
        if subscription is None:
            return None

        now = utcnow()
        if self.is_lapsed(subscription, now):
            expired = await subscription_crud.expire_if_lapsed(db, tenant_id, now)
            await db.commit()
            if expired:
                logger.info(
                    f"Subscription for tenant {tenant_id} lapsed "
                    f"(plan={subscription.plan_id}, was {subscription.status.value}), marked expired"
                )
            subscription = await subscription_crud.get_by_tenant(db, tenant_id)

        return subscription

    async def get_status(self, db: AsyncSession, tenant_id: str) -> Subscription:
        subscription = await self.find_status(db, tenant_id)
        if subscription is None:
            raise NotFoundError("Subscription")
        return subscription

    async def start_trial(
        self,
        db: AsyncSession,
        tenant_id: str,
        trial_plan_id: Optional[str] = None
    ) -> Subscription:
        """
        Provision a tenant: create the trial subscription and zeroed usage counters together.
        """
        plan = self.catalog.get_plan(trial_plan_id or settings.trial_plan_id)

        existing = await subscription_crud.get_by_tenant(db, tenant_id)
        if existing is not None:
            raise AlreadyProvisionedError(tenant_id)

        now = utcnow()
        trial_ends_at = now + timedelta(days=plan.duration_days)

        try:
            subscription = await subscription_crud.create(
                db,
                obj_in=SubscriptionCreate(
                    tenant_id=tenant_id,
                    plan_id=plan.plan_id,
                    status=SubscriptionStatus.TRIAL,
                    trial_ends_at=trial_ends_at,
                    current_period_start=now,
                    current_period_end=trial_ends_at
                ),
                commit=False
            )
            await usage_counter_crud.create_for_tenant(db, tenant_id)
            await db.commit()
        except IntegrityError:
            # A concurrent signup for the same tenant won the unique constraint
            await db.rollback()
            raise AlreadyProvisionedError(tenant_id)

        await db.refresh(subscription)
        logger.info(f"Started {plan.plan_id} for tenant {tenant_id}, ends {trial_ends_at.isoformat()}")
        return subscription

    async def activate(
        self,
        db: AsyncSession,
        tenant_id: str,
        plan_id: str,
        period_start: datetime,
        period_end: datetime
    ) -> bool:
        """
        Transition to active for [period_start, period_end).

        Runs inside the caller's transaction and does not commit; the payment
        reconciler commits it together with the intent update. Returns False
        when the subscription was already active with this exact period end.
        """
        plan = self.catalog.get_plan(plan_id)
        paid_at = utcnow()
        activated = await subscription_crud.activate(
            db,
            tenant_id,
            plan.plan_id,
            period_start,
            period_end,
            paid_at=paid_at
        )
        if not activated and await subscription_crud.get_by_tenant(db, tenant_id) is None:
            # Tenant paid without ever starting a trial: provision directly into active
            await subscription_crud.create(
                db,
                obj_in=SubscriptionCreate(
                    tenant_id=tenant_id,
                    plan_id=plan.plan_id,
                    status=SubscriptionStatus.ACTIVE,
                    current_period_start=period_start,
                    current_period_end=period_end,
                    last_payment_at=paid_at
                ),
                commit=False
            )
            await usage_counter_crud.create_for_tenant(db, tenant_id)
            activated = True

        if activated:
            logger.info(f"Activating {plan.plan_id} for tenant {tenant_id} until {period_end.isoformat()}")
        else:
            logger.info(f"Activation for tenant {tenant_id} with period end {period_end.isoformat()} already applied")
        return activated

    async def cancel(self, db: AsyncSession, tenant_id: str) -> Subscription:
        """Turn off auto-renew; access continues until the current period ends"""
        subscription = await self.get_status(db, tenant_id)
        if subscription.auto_renew:
            await subscription_crud.disable_auto_renew(db, tenant_id, utcnow())
            logger.info(f"Auto-renew disabled for tenant {tenant_id}")
            subscription = await subscription_crud.get_by_tenant(db, tenant_id)
        return subscription

    async def get_status_summary(self, db: AsyncSession, tenant_id: str) -> SubscriptionStatusResponse:
        subscription = await self.get_status(db, tenant_id)
        plan = self.catalog.get_plan(subscription.plan_id) if self.catalog.has_plan(subscription.plan_id) else None
        entitled = self.is_entitled(subscription)

        return SubscriptionStatusResponse(
            success=True,
            subscription=SubscriptionResponse.model_validate(subscription),
            plan=plan,
            is_entitled=entitled,
            cancel_at_period_end=entitled and not subscription.auto_renew,
            days_remaining=days_until(subscription.current_period_end, utcnow()) if entitled else 0
        )


# Create singleton instance
subscription_service = SubscriptionService()
