from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
from datetime import datetime

from app.crud.base import CRUDBase
from app.models.payment_webhook_event import PaymentWebhookEvent
from pydantic import BaseModel


class PaymentWebhookEventCreate(BaseModel):
    event_id: str
    provider: str
    event_type: str
    intent_id: Optional[str] = None
    outcome: Optional[str] = None
    processed_at: Optional[datetime] = None


class CRUDPaymentWebhookEvent(CRUDBase[PaymentWebhookEvent, PaymentWebhookEventCreate]):
    async def get_by_event_id(self, db: AsyncSession, event_id: str) -> Optional[PaymentWebhookEvent]:
        result = await db.execute(
            select(self.model).where(self.model.event_id == event_id)
        )
        return result.scalar_one_or_none()


payment_webhook_event_crud = CRUDPaymentWebhookEvent(PaymentWebhookEvent)
