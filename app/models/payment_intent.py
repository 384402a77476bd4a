from sqlalchemy import Column, String, Numeric, DateTime, Text, Uuid, Enum as SQLEnum
import uuid
import enum
from .base import Base, TimestampMixin

class PaymentIntentStatus(str, enum.Enum):
    """Payment intent lifecycle: pending transitions exactly once to a terminal state"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class PaymentIntent(Base, TimestampMixin):
    """Append-only record of a single purchase attempt"""
    __tablename__ = "payment_intents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    plan_id = Column(String(50), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    channel = Column(String(20), nullable=False)  # upi, stripe
    status = Column(SQLEnum(PaymentIntentStatus), default=PaymentIntentStatus.PENDING, nullable=False)

    # Payment network's transaction id, attached on reconciliation
    external_reference = Column(String(255), nullable=True)
    failure_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
