import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import PlanNotPurchasableError
from app.crud.payment_intent import payment_intent_crud, PaymentIntentCreate
from app.models.payment_intent import PaymentIntent, PaymentIntentStatus
from app.services.payment_channels import PaymentChannel, build_channel
from app.services.plan_catalog import PlanCatalog, plan_catalog

logger = logging.getLogger(__name__)


class PaymentService:
    """Issues payment intents; never touches subscription or usage state"""

    def __init__(
        self,
        catalog: PlanCatalog = plan_catalog,
        channel: Optional[PaymentChannel] = None
    ):
        self.catalog = catalog
        self.channel = channel or build_channel()

    async def create_intent(
        self,
        db: AsyncSession,
        tenant_id: str,
        plan_id: str
    ) -> Tuple[PaymentIntent, Dict[str, Any]]:
        """
        Persist a pending intent for the plan price and return it with the
        channel payload (deep link or checkout descriptor) the payer acts on.
        """
        plan = self.catalog.get_plan(plan_id)
        if not plan.purchasable:
            raise PlanNotPurchasableError(plan_id)

        intent = await payment_intent_crud.create(
            db,
            obj_in=PaymentIntentCreate(
                tenant_id=tenant_id,
                plan_id=plan.plan_id,
                amount=plan.price,
                currency=settings.currency,
                channel=self.channel.name
            )
        )
        logger.info(
            f"Created payment intent {intent.id} for tenant {tenant_id}: "
            f"{plan.plan_id} {intent.amount} {intent.currency} via {self.channel.name}"
        )

        payload = await self.channel.build_payload(intent, plan)
        return intent, payload

    async def get_intent(self, db: AsyncSession, intent_id: UUID) -> PaymentIntent:
        return await payment_intent_crud.get(db, intent_id)

    async def get_intent_status(self, db: AsyncSession, intent_id: UUID) -> PaymentIntentStatus:
        intent = await payment_intent_crud.get(db, intent_id)
        return intent.status

    async def list_intents(
        self,
        db: AsyncSession,
        tenant_id: str,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[PaymentIntent], int]:
        return await payment_intent_crud.get_by_tenant(db, tenant_id, skip=skip, limit=limit)


# Create singleton instance
payment_service = PaymentService()
