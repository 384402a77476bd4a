from sqlalchemy import Column, String, Boolean, DateTime, Uuid, Enum as SQLEnum
import uuid
import enum
from .base import Base, TimestampMixin

class SubscriptionStatus(str, enum.Enum):
    """Subscription status enum"""
    TRIAL = "trial"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

class Subscription(Base, TimestampMixin):
    """One billing subscription per tenant, created at trial activation and never deleted"""
    __tablename__ = "subscriptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    tenant_id = Column(String(64), nullable=False, unique=True, index=True)
    plan_id = Column(String(50), nullable=False)  # trial, monthly, quarterly, yearly
    status = Column(SQLEnum(SubscriptionStatus), default=SubscriptionStatus.TRIAL, nullable=False)

    trial_ends_at = Column(DateTime, nullable=True)
    current_period_start = Column(DateTime, nullable=False)
    current_period_end = Column(DateTime, nullable=False)

    auto_renew = Column(Boolean, default=True, nullable=False)
    cancelled_at = Column(DateTime, nullable=True)  # when auto-renew was switched off
    last_payment_at = Column(DateTime, nullable=True)
