from typing import Optional
from datetime import datetime
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, or_, not_

from app.crud.base import CRUDBase
from app.models.subscription import Subscription, SubscriptionStatus


class SubscriptionCreate(BaseModel):
    tenant_id: str
    plan_id: str
    status: SubscriptionStatus
    trial_ends_at: Optional[datetime] = None
    current_period_start: datetime
    current_period_end: datetime
    last_payment_at: Optional[datetime] = None


class CRUDSubscription(CRUDBase[Subscription, SubscriptionCreate]):
    async def get_by_tenant(self, db: AsyncSession, tenant_id: str) -> Optional[Subscription]:
        """Get the tenant's subscription, always reloading attributes from the database"""
        result = await db.execute(
            select(self.model)
            .where(self.model.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def expire_if_lapsed(self, db: AsyncSession, tenant_id: str, now: datetime) -> bool:
        """Rewrite a lapsed trial/active subscription to expired. Does not commit."""
        result = await db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.tenant_id == tenant_id,
                    or_(
                        and_(
                            self.model.status == SubscriptionStatus.TRIAL,
                            self.model.trial_ends_at <= now
                        ),
                        and_(
                            self.model.status == SubscriptionStatus.ACTIVE,
                            self.model.current_period_end <= now
                        )
                    )
                )
            )
            .values(status=SubscriptionStatus.EXPIRED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def activate(
        self,
        db: AsyncSession,
        tenant_id: str,
        plan_id: str,
        period_start: datetime,
        period_end: datetime,
        paid_at: datetime
    ) -> bool:
        """
        Move the subscription to active for the given period. Does not commit.
        A subscription already active on the same plan with the same period end is left untouched.
        """
        result = await db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.tenant_id == tenant_id,
                    not_(
                        and_(
                            self.model.status == SubscriptionStatus.ACTIVE,
                            self.model.plan_id == plan_id,
                            self.model.current_period_end == period_end
                        )
                    )
                )
            )
            .values(
                plan_id=plan_id,
                status=SubscriptionStatus.ACTIVE,
                current_period_start=period_start,
                current_period_end=period_end,
                auto_renew=True,
                cancelled_at=None,
                last_payment_at=paid_at,
                updated_at=paid_at
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def disable_auto_renew(self, db: AsyncSession, tenant_id: str, now: datetime) -> bool:
        """Switch auto-renew off. Status and period are left as they are."""
        result = await db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.tenant_id == tenant_id,
                    self.model.auto_renew == True
                )
            )
            .values(auto_renew=False, cancelled_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount > 0


subscription_crud = CRUDSubscription(Subscription)
