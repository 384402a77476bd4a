"""Tests for payment intent issuing and the payment channels."""

from decimal import Decimal
from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse

import pytest

from app.core.exceptions import PlanNotPurchasableError, UnknownPlanError
from app.models.payment_intent import PaymentIntentStatus
from app.services.payment_channels import PaymentChannelError, StripeCheckoutChannel
from app.services.payment_service import PaymentService
from app.services.stripe_service import StripeService


@pytest.mark.asyncio
async def test_create_intent_persists_pending_intent(db, payments):
    intent, payload = await payments.create_intent(db, "tenant-a", "monthly")

    assert intent.status == PaymentIntentStatus.PENDING
    assert intent.amount == Decimal("999")
    assert intent.currency == "INR"
    assert intent.channel == "upi"
    assert payload["intent_id"] == str(intent.id)
    assert payload["amount"] == "999.00"


@pytest.mark.asyncio
async def test_upi_deep_link_format(db, payments):
    intent, payload = await payments.create_intent(db, "tenant-a", "quarterly")

    url = urlparse(payload["upi_url"])
    params = parse_qs(url.query)

    assert payload["upi_url"].startswith("upi://pay?")
    assert params["pa"] == ["shop@okbank"]
    assert params["pn"] == ["Shop Billing"]
    assert params["am"] == ["2599.00"]
    assert params["cu"] == ["INR"]
    assert params["tn"] == ["Quarterly Business subscription"]
    assert params["tr"] == [str(intent.id)]
    # Spaces are percent-encoded, not turned into '+'
    assert "Shop%20Billing" in payload["upi_url"]


@pytest.mark.asyncio
async def test_trial_plan_is_not_purchasable(db, payments):
    with pytest.raises(PlanNotPurchasableError) as exc:
        await payments.create_intent(db, "tenant-a", "trial")
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_unknown_plan_creates_no_intent(db, payments):
    with pytest.raises(UnknownPlanError):
        await payments.create_intent(db, "tenant-a", "lifetime")
    intents, total = await payments.list_intents(db, "tenant-a")
    assert total == 0


@pytest.mark.asyncio
async def test_list_and_status(db, payments):
    first, _ = await payments.create_intent(db, "tenant-a", "monthly")
    await payments.create_intent(db, "tenant-a", "yearly")
    await payments.create_intent(db, "tenant-b", "monthly")

    intents, total = await payments.list_intents(db, "tenant-a")

    assert total == 2
    assert {i.plan_id for i in intents} == {"monthly", "yearly"}
    assert await payments.get_intent_status(db, first.id) == PaymentIntentStatus.PENDING


@pytest.mark.asyncio
async def test_stripe_channel_returns_checkout_url(db, catalog):
    stripe = StripeService()
    stripe.create_checkout_session = AsyncMock(return_value={
        "success": True,
        "session": {"id": "cs_test_123"},
        "checkout_url": "https://checkout.stripe.com/c/pay/cs_test_123",
    })
    service = PaymentService(catalog, channel=StripeCheckoutChannel(stripe, "https://app.example.com/"))

    intent, payload = await service.create_intent(db, "tenant-a", "monthly")

    assert intent.channel == "stripe"
    assert payload["checkout_url"].endswith("cs_test_123")
    kwargs = stripe.create_checkout_session.call_args.kwargs
    assert kwargs["intent_id"] == str(intent.id)
    assert kwargs["success_url"].startswith("https://app.example.com/subscription/success")


@pytest.mark.asyncio
async def test_stripe_channel_error_surfaces(db, catalog):
    stripe = StripeService()
    stripe.create_checkout_session = AsyncMock(return_value={"success": False, "error": "Stripe not configured"})
    service = PaymentService(catalog, channel=StripeCheckoutChannel(stripe, "https://app.example.com"))

    with pytest.raises(PaymentChannelError):
        await service.create_intent(db, "tenant-a", "monthly")


def test_minor_units():
    assert StripeService.to_minor_units(Decimal("999")) == 99900
    assert StripeService.to_minor_units(Decimal("25.99")) == 2599
