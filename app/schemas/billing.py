from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from enum import Enum

# Enums
class ResourceKindEnum(str, Enum):
    PRODUCTS = "products"
    CUSTOMERS = "customers"
    INVOICES = "invoices"
    STORAGE_MB = "storageMB"

class SubscriptionStatusEnum(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

class PaymentIntentStatusEnum(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

# Plan Catalog Schemas
class FrozenLimits(dict):
    """Read-only quota table shared by every holder of a plan"""

    def _readonly(self, *args, **kwargs):
        raise TypeError("plan limits are read-only")

    __setitem__ = __delitem__ = _readonly
    clear = pop = popitem = setdefault = update = _readonly
    __ior__ = _readonly

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (FrozenLimits, (dict(self),))


class PlanDefinition(BaseModel):
    """Immutable plan definition from the catalog"""
    plan_id: str = Field(..., description="Plan identifier (trial, monthly, quarterly, yearly)")
    name: str = Field(..., description="Human-readable plan name")
    price: Decimal = Field(..., description="Price per period")
    duration_days: int = Field(..., gt=0, description="Length of one period in days")
    limits: Dict[ResourceKindEnum, int] = Field(..., description="Quota per metered resource")
    features: Tuple[str, ...] = Field(default_factory=tuple)
    purchasable: bool = Field(True, description="False for plans only reachable through a trial")

    class Config:
        frozen = True

    @field_validator("limits")
    @classmethod
    def freeze_limits(cls, limits):
        return FrozenLimits(limits)

    def limit_for(self, resource_kind: str) -> int:
        return self.limits.get(ResourceKindEnum(getattr(resource_kind, "value", resource_kind)), 0)

class PlanListResponse(BaseModel):
    plans: List[PlanDefinition]

# Subscription Schemas
class SubscriptionResponse(BaseModel):
    id: UUID
    tenant_id: str
    plan_id: str
    status: SubscriptionStatusEnum
    trial_ends_at: Optional[datetime] = None
    current_period_start: datetime
    current_period_end: datetime
    auto_renew: bool
    cancelled_at: Optional[datetime] = None
    last_payment_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class SubscriptionStatusResponse(BaseModel):
    success: bool
    subscription: SubscriptionResponse
    plan: Optional[PlanDefinition] = None
    is_entitled: bool
    cancel_at_period_end: bool
    days_remaining: int

class StartTrialRequest(BaseModel):
    plan_id: Optional[str] = Field(None, description="Trial plan id, defaults to the configured trial plan")

# Usage Schemas
class UsageEntry(BaseModel):
    used: int
    limit: int
    remaining: int
    percentage_used: float

class UsageSnapshotResponse(BaseModel):
    success: bool
    tenant_id: str
    plan_id: Optional[str] = None
    usage: Dict[ResourceKindEnum, UsageEntry]

class AdmissionRequest(BaseModel):
    resource_kind: ResourceKindEnum
    delta: int = Field(1, gt=0, description="Units to reserve or release")

class AdmissionResponse(BaseModel):
    admitted: bool
    reason: Optional[str] = None
    current_usage: Optional[int] = None
    limit: Optional[int] = None
    message: str

class ReleaseResponse(BaseModel):
    success: bool
    resource_kind: ResourceKindEnum
    used: int

# Payment Intent Schemas
class CreateIntentRequest(BaseModel):
    plan_id: str

class PaymentIntentResponse(BaseModel):
    id: UUID
    tenant_id: str
    plan_id: str
    amount: Decimal
    currency: str
    channel: str
    status: PaymentIntentStatusEnum
    external_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class CreateIntentResponse(BaseModel):
    success: bool
    intent: PaymentIntentResponse
    payment: Dict[str, Any] = Field(..., description="Opaque payment-channel payload")

class IntentStatusResponse(BaseModel):
    intent_id: UUID
    status: PaymentIntentStatusEnum
    external_reference: Optional[str] = None

class IntentListResponse(BaseModel):
    success: bool
    intents: List[PaymentIntentResponse]
    total_count: int

class VerifyPaymentRequest(BaseModel):
    external_reference: str = Field(..., min_length=1, description="Payment network transaction id")

class FailPaymentRequest(BaseModel):
    reason: str = Field(..., min_length=1)

class ReconcileResponse(BaseModel):
    success: bool
    outcome: str
    message: str
    subscription: Optional[SubscriptionResponse] = None
