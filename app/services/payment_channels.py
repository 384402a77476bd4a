"""
Payment channels turn a pending intent into something the payer can act on
(a UPI deep link, a hosted checkout URL). They never touch subscription state.
"""

from decimal import Decimal
from typing import Any, Dict
from urllib.parse import urlencode, quote

from app.core.config import settings
from app.models.payment_intent import PaymentIntent
from app.schemas.billing import PlanDefinition
from app.services.stripe_service import StripeService, stripe_service


class PaymentChannelError(Exception):
    """The provider could not produce a payment payload"""


class PaymentChannel:
    name = "base"

    async def build_payload(self, intent: PaymentIntent, plan: PlanDefinition) -> Dict[str, Any]:
        raise NotImplementedError


class UpiChannel(PaymentChannel):
    name = "upi"

    def __init__(self, vpa: str, payee_name: str, currency: str = "INR"):
        self.vpa = vpa
        self.payee_name = payee_name
        self.currency = currency

    @staticmethod
    def format_amount(amount: Decimal) -> str:
        return f"{Decimal(amount):.2f}"

    def build_url(self, intent: PaymentIntent, plan: PlanDefinition) -> str:
        params = {
            "pa": self.vpa,
            "pn": self.payee_name,
            "am": self.format_amount(intent.amount),
            "cu": self.currency,
            "tn": f"{plan.name} subscription",
            "tr": str(intent.id),
        }
        return "upi://pay?" + urlencode(params, quote_via=quote)

    async def build_payload(self, intent: PaymentIntent, plan: PlanDefinition) -> Dict[str, Any]:
        return {
            "channel": self.name,
            "intent_id": str(intent.id),
            "amount": self.format_amount(intent.amount),
            "currency": self.currency,
            "upi_url": self.build_url(intent, plan),
            "upi_id": self.vpa,
        }


class StripeCheckoutChannel(PaymentChannel):
    name = "stripe"

    def __init__(self, service: StripeService, frontend_url: str, currency: str = "INR"):
        self.service = service
        self.frontend_url = frontend_url.rstrip("/")
        self.currency = currency

    async def build_payload(self, intent: PaymentIntent, plan: PlanDefinition) -> Dict[str, Any]:
        result = await self.service.create_checkout_session(
            intent_id=str(intent.id),
            plan_name=plan.name,
            amount=intent.amount,
            currency=self.currency,
            success_url=f"{self.frontend_url}/subscription/success?intent_id={intent.id}",
            cancel_url=f"{self.frontend_url}/subscription/cancel?intent_id={intent.id}",
        )
        if not result["success"]:
            raise PaymentChannelError(result.get("error", "Failed to create checkout session"))
        return {
            "channel": self.name,
            "intent_id": str(intent.id),
            "amount": f"{Decimal(intent.amount):.2f}",
            "currency": self.currency,
            "checkout_url": result["checkout_url"],
            "session_id": result["session"]["id"],
        }


def build_channel() -> PaymentChannel:
    """Channel selected by the PAYMENT_CHANNEL setting"""
    if settings.payment_channel == "stripe":
        return StripeCheckoutChannel(stripe_service, settings.frontend_url, settings.currency)
    if settings.payment_channel == "upi":
        return UpiChannel(settings.upi_vpa, settings.upi_payee_name, settings.currency)
    raise ValueError(f"Unsupported payment channel: {settings.payment_channel}")
