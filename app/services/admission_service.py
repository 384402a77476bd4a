import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.crud.usage_counter import usage_counter_crud
from app.models.usage_counter import ResourceKind
from app.schemas.billing import ResourceKindEnum, UsageEntry, UsageSnapshotResponse
from app.services.plan_catalog import PlanCatalog, plan_catalog
from app.services.subscription_service import SubscriptionService, subscription_service

logger = logging.getLogger(__name__)


class DenialReason(str, Enum):
    SUBSCRIPTION_INACTIVE = "subscription_inactive"
    LIMIT_REACHED = "limit_reached"
    UNKNOWN_PLAN = "unknown_plan"


@dataclass(frozen=True)
class AdmissionDecision:
    """Result of an admission request: either admitted, or denied with the usage that caused it"""
    admitted: bool
    reason: Optional[DenialReason] = None
    current_usage: Optional[int] = None
    limit: Optional[int] = None

    @classmethod
    def allow(cls, current_usage: int, limit: int) -> "AdmissionDecision":
        return cls(admitted=True, current_usage=current_usage, limit=limit)

    @classmethod
    def deny(
        cls,
        reason: DenialReason,
        current_usage: Optional[int] = None,
        limit: Optional[int] = None
    ) -> "AdmissionDecision":
        return cls(admitted=False, reason=reason, current_usage=current_usage, limit=limit)

    @property
    def message(self) -> str:
        if self.admitted:
            return "Request allowed"
        if self.reason == DenialReason.SUBSCRIPTION_INACTIVE:
            return "Your subscription is not active. Please upgrade to continue."
        if self.reason == DenialReason.UNKNOWN_PLAN:
            return "Your plan is no longer available. Please contact support."
        return (
            f"Limit reached! You have {self.current_usage} out of {self.limit}. "
            "Please upgrade your plan to add more."
        )


def _coerce_kind(resource_kind) -> ResourceKind:
    return ResourceKind(getattr(resource_kind, "value", resource_kind))


def _validate_delta(delta: int) -> None:
    if not isinstance(delta, int) or isinstance(delta, bool) or delta < 1:
        raise ValidationError("delta must be a positive integer")


class AdmissionService:
    """Usage ledger and quota gate for resource creation"""

    def __init__(
        self,
        catalog: PlanCatalog = plan_catalog,
        subscriptions: SubscriptionService = subscription_service
    ):
        self.catalog = catalog
        self.subscriptions = subscriptions

    async def try_admit(
        self,
        db: AsyncSession,
        tenant_id: str,
        resource_kind: ResourceKind,
        delta: int = 1
    ) -> AdmissionDecision:
        """
        Reserve delta units of resource_kind for the tenant if the plan allows it.

        The reservation is one conditional UPDATE (used + delta <= limit), so
        racing callers at the boundary cannot overshoot the limit. A denial
        leaves the counter untouched.
        """
        _validate_delta(delta)
        kind = _coerce_kind(resource_kind)

        subscription = await self.subscriptions.find_status(db, tenant_id)
        if subscription is None or not self.subscriptions.is_entitled(subscription):
            logger.info(f"Admission denied for tenant {tenant_id} ({kind.value}): subscription inactive")
            return AdmissionDecision.deny(DenialReason.SUBSCRIPTION_INACTIVE)

        if not self.catalog.has_plan(subscription.plan_id):
            logger.error(
                f"Admission denied for tenant {tenant_id} ({kind.value}): "
                f"plan {subscription.plan_id} is not in the catalog"
            )
            return AdmissionDecision.deny(DenialReason.UNKNOWN_PLAN)

        limit = self.catalog.get_plan(subscription.plan_id).limit_for(kind)

        admitted = await usage_counter_crud.try_increment(db, tenant_id, kind, delta, limit)
        current_usage = await usage_counter_crud.get_used(db, tenant_id, kind)
        if current_usage is None:
            raise NotFoundError("Usage counter")

        if not admitted:
            logger.info(
                f"Admission denied for tenant {tenant_id} ({kind.value}): "
                f"{current_usage} + {delta} exceeds limit {limit}"
            )
            return AdmissionDecision.deny(DenialReason.LIMIT_REACHED, current_usage, limit)

        return AdmissionDecision.allow(current_usage, limit)

    async def release(
        self,
        db: AsyncSession,
        tenant_id: str,
        resource_kind: ResourceKind,
        delta: int = 1
    ) -> int:
        """Give back delta units after a confirmed delete. Returns the new count."""
        _validate_delta(delta)
        kind = _coerce_kind(resource_kind)

        updated = await usage_counter_crud.decrement(db, tenant_id, kind, delta)
        if not updated:
            raise NotFoundError("Usage counter")
        return await usage_counter_crud.get_used(db, tenant_id, kind)

    async def get_usage_snapshot(self, db: AsyncSession, tenant_id: str) -> UsageSnapshotResponse:
        subscription = await self.subscriptions.get_status(db, tenant_id)
        plan = self.catalog.get_plan(subscription.plan_id) if self.catalog.has_plan(subscription.plan_id) else None

        counters = await usage_counter_crud.get_for_tenant(db, tenant_id)
        usage: Dict[ResourceKindEnum, UsageEntry] = {}
        for counter in counters:
            limit = plan.limit_for(counter.resource_kind) if plan else 0
            usage[ResourceKindEnum(counter.resource_kind.value)] = UsageEntry(
                used=counter.used,
                limit=limit,
                remaining=max(0, limit - counter.used),
                percentage_used=round(min(counter.used / limit * 100, 100), 2) if limit > 0 else 0.0
            )

        return UsageSnapshotResponse(
            success=True,
            tenant_id=tenant_id,
            plan_id=subscription.plan_id,
            usage=usage
        )


# Create singleton instance
admission_service = AdmissionService()
