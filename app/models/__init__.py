# Database models package

from .base import Base
from .subscription import Subscription, SubscriptionStatus
from .usage_counter import UsageCounter, ResourceKind
from .payment_intent import PaymentIntent, PaymentIntentStatus
from .payment_webhook_event import PaymentWebhookEvent

__all__ = [
    'Base',
    'Subscription',
    'SubscriptionStatus',
    'UsageCounter',
    'ResourceKind',
    'PaymentIntent',
    'PaymentIntentStatus',
    'PaymentWebhookEvent',
]
