from sqlalchemy import Column, String, DateTime, Uuid
import uuid
from .base import Base, TimestampMixin


class PaymentWebhookEvent(Base, TimestampMixin):
    __tablename__ = "payment_webhook_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    # Provider event id for idempotency
    event_id = Column(String(255), nullable=False, unique=True, index=True)
    provider = Column(String(50), nullable=False)  # stripe
    event_type = Column(String(100), nullable=False)

    intent_id = Column(String(64), nullable=True, index=True)
    outcome = Column(String(50), nullable=True)  # reconciled, already_processed, failed, ignored
    processed_at = Column(DateTime, nullable=True)  # when processed locally
