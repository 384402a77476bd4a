# CRUD operations package

from .subscription import subscription_crud
from .usage_counter import usage_counter_crud
from .payment_intent import payment_intent_crud
from .payment_webhook_event import payment_webhook_event_crud

__all__ = [
    'subscription_crud',
    'usage_counter_crud',
    'payment_intent_crud',
    'payment_webhook_event_crud'
]
