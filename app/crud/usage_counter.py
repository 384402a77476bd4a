from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, case
from pydantic import BaseModel

from app.crud.base import CRUDBase
from app.models.usage_counter import UsageCounter, ResourceKind


class CRUDUsageCounter(CRUDBase[UsageCounter, BaseModel]):
    async def create_for_tenant(self, db: AsyncSession, tenant_id: str) -> List[UsageCounter]:
        """Create a zeroed counter for every resource kind. Does not commit."""
        counters = [
            UsageCounter(tenant_id=tenant_id, resource_kind=kind, used=0)
            for kind in ResourceKind
        ]
        db.add_all(counters)
        await db.flush()
        return counters

    async def get_for_tenant(self, db: AsyncSession, tenant_id: str) -> List[UsageCounter]:
        result = await db.execute(
            select(self.model)
            .where(self.model.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_used(self, db: AsyncSession, tenant_id: str, resource_kind: ResourceKind) -> Optional[int]:
        result = await db.execute(
            select(self.model.used).where(
                and_(
                    self.model.tenant_id == tenant_id,
                    self.model.resource_kind == resource_kind
                )
            )
        )
        return result.scalar_one_or_none()

    async def try_increment(
        self,
        db: AsyncSession,
        tenant_id: str,
        resource_kind: ResourceKind,
        delta: int,
        limit: int
    ) -> bool:
        """
        Conditionally add delta to the counter in a single statement.
        Returns False (and changes nothing) when the result would exceed limit.
        """
        result = await db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.tenant_id == tenant_id,
                    self.model.resource_kind == resource_kind,
                    self.model.used + delta <= limit
                )
            )
            .values(used=self.model.used + delta)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount > 0

    async def decrement(
        self,
        db: AsyncSession,
        tenant_id: str,
        resource_kind: ResourceKind,
        delta: int
    ) -> bool:
        """Subtract delta from the counter, floored at zero"""
        result = await db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.tenant_id == tenant_id,
                    self.model.resource_kind == resource_kind
                )
            )
            .values(
                used=case(
                    (self.model.used - delta < 0, 0),
                    else_=self.model.used - delta
                )
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount > 0


usage_counter_crud = CRUDUsageCounter(UsageCounter)
