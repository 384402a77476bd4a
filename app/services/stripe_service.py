import stripe
from app.core.config import settings
from typing import Dict, Any
from decimal import Decimal


# Stripe event types that settle a checkout-backed payment intent
COMPLETED_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
FAILED_EVENTS = ("checkout.session.expired", "checkout.session.async_payment_failed")


class StripeService:
    def __init__(self):
        if settings.stripe_secret:
            stripe.api_key = settings.stripe_secret
            self.webhook_secret = settings.stripe_webhook_secret
        else:
            # Don't raise exception during initialization, handle it in methods
            self.webhook_secret = None

    @staticmethod
    def to_minor_units(amount: Decimal) -> int:
        """Stripe amounts are integers in the currency's smallest unit"""
        return int((Decimal(amount) * 100).quantize(Decimal("1")))

    async def create_checkout_session(
        self,
        intent_id: str,
        plan_name: str,
        amount: Decimal,
        currency: str,
        success_url: str,
        cancel_url: str
    ) -> Dict[str, Any]:
        """Create a one-off Stripe Checkout session that pays for a single intent"""
        try:
            if not settings.stripe_secret:
                return {
                    "success": False,
                    "error": "Stripe not configured"
                }

            session = stripe.checkout.Session.create(
                mode='payment',
                payment_method_types=['card'],
                line_items=[{
                    'price_data': {
                        'currency': currency.lower(),
                        'unit_amount': self.to_minor_units(amount),
                        'product_data': {'name': plan_name},
                    },
                    'quantity': 1,
                }],
                success_url=success_url,
                cancel_url=cancel_url,
                client_reference_id=intent_id,
                metadata={"intent_id": intent_id}
            )

            return {
                "success": True,
                "session": session,
                "checkout_url": session.url
            }
        except Exception as e:
            return {
                "success": False,
                "error": str(e)
            }

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Verify Stripe webhook signature"""
        if not self.webhook_secret:
            return False
        try:
            stripe.Webhook.construct_event(
                payload, signature, self.webhook_secret
            )
            return True
        except (ValueError, stripe.SignatureVerificationError):
            return False

    def parse_checkout_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Extract what the reconciler needs from a checkout event.
        Returns {"action": "completed"|"failed"|"ignored", "intent_id", "external_reference", "reason"}.
        """
        event_type = event.get("type", "")
        session = event.get("data", {}).get("object", {}) or {}
        intent_id = session.get("client_reference_id") or (session.get("metadata") or {}).get("intent_id")

        if event_type in COMPLETED_EVENTS:
            if session.get("payment_status") not in ("paid", "no_payment_required"):
                # Async payment methods report success in a later event
                return {"action": "ignored", "intent_id": intent_id}
            return {
                "action": "completed",
                "intent_id": intent_id,
                "external_reference": session.get("payment_intent") or session.get("id"),
            }
        if event_type in FAILED_EVENTS:
            return {
                "action": "failed",
                "intent_id": intent_id,
                "reason": event_type,
            }
        return {"action": "ignored", "intent_id": intent_id}


stripe_service = StripeService()
