from typing import List, Tuple
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update, and_

from app.crud.base import CRUDBase
from app.models.payment_intent import PaymentIntent, PaymentIntentStatus


class PaymentIntentCreate(BaseModel):
    tenant_id: str
    plan_id: str
    amount: Decimal
    currency: str
    channel: str


class CRUDPaymentIntent(CRUDBase[PaymentIntent, PaymentIntentCreate]):
    async def get_by_tenant(
        self,
        db: AsyncSession,
        tenant_id: str,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[PaymentIntent], int]:
        """Payment history for a tenant, newest first"""
        return await self.get_multi(
            db,
            skip=skip,
            limit=limit,
            filters={'tenant_id': tenant_id}
        )

    async def mark_completed(
        self,
        db: AsyncSession,
        intent_id: UUID,
        external_reference: str,
        completed_at: datetime
    ) -> bool:
        """Claim a pending intent as completed. Does not commit; False if it was not pending."""
        result = await db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.id == intent_id,
                    self.model.status == PaymentIntentStatus.PENDING
                )
            )
            .values(
                status=PaymentIntentStatus.COMPLETED,
                external_reference=external_reference,
                completed_at=completed_at,
                updated_at=completed_at
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def mark_failed(
        self,
        db: AsyncSession,
        intent_id: UUID,
        reason: str,
        failed_at: datetime
    ) -> bool:
        """Move a pending intent to failed. False if it was not pending."""
        result = await db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.id == intent_id,
                    self.model.status == PaymentIntentStatus.PENDING
                )
            )
            .values(
                status=PaymentIntentStatus.FAILED,
                failure_reason=reason,
                updated_at=failed_at
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount > 0


payment_intent_crud = CRUDPaymentIntent(PaymentIntent)
