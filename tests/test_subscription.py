"""Tests for the subscription state store: provisioning, lazy expiry, cancel, activation."""

from datetime import timedelta

import pytest
from sqlalchemy import update

from app.core.exceptions import AlreadyProvisionedError, NotFoundError, UnknownPlanError
from app.crud.usage_counter import usage_counter_crud
from app.models.subscription import Subscription, SubscriptionStatus
from app.utils.utils import utcnow


async def _set_period(db, tenant_id, **values):
    await db.execute(
        update(Subscription).where(Subscription.tenant_id == tenant_id).values(**values)
    )
    await db.commit()


@pytest.mark.asyncio
async def test_start_trial_creates_subscription_and_counters(db, subscriptions):
    subscription = await subscriptions.start_trial(db, "tenant-a")

    assert subscription.status == SubscriptionStatus.TRIAL
    assert subscription.plan_id == "trial"
    assert subscription.auto_renew is True
    assert (subscription.trial_ends_at - subscription.current_period_start).days == 14

    counters = await usage_counter_crud.get_for_tenant(db, "tenant-a")
    assert len(counters) == 4
    assert all(c.used == 0 for c in counters)


@pytest.mark.asyncio
async def test_start_trial_twice_is_rejected(db, subscriptions):
    await subscriptions.start_trial(db, "tenant-a")
    with pytest.raises(AlreadyProvisionedError) as exc:
        await subscriptions.start_trial(db, "tenant-a")
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_start_trial_with_unknown_plan(db, subscriptions):
    with pytest.raises(UnknownPlanError):
        await subscriptions.start_trial(db, "tenant-a", "platinum")


@pytest.mark.asyncio
async def test_status_for_unknown_tenant(db, subscriptions):
    assert await subscriptions.find_status(db, "nobody") is None
    with pytest.raises(NotFoundError):
        await subscriptions.get_status(db, "nobody")


@pytest.mark.asyncio
async def test_lapsed_trial_reads_as_expired(db, subscriptions):
    await subscriptions.start_trial(db, "tenant-a")
    past = utcnow() - timedelta(minutes=1)
    await _set_period(db, "tenant-a", trial_ends_at=past, current_period_end=past)

    subscription = await subscriptions.get_status(db, "tenant-a")

    assert subscription.status == SubscriptionStatus.EXPIRED
    assert subscriptions.is_entitled(subscription) is False


@pytest.mark.asyncio
async def test_lapsed_paid_period_reads_as_expired(db, subscriptions):
    await subscriptions.start_trial(db, "tenant-a")
    now = utcnow()
    await subscriptions.activate(db, "tenant-a", "monthly", now - timedelta(days=31), now - timedelta(days=1))
    await db.commit()

    subscription = await subscriptions.get_status(db, "tenant-a")
    assert subscription.status == SubscriptionStatus.EXPIRED
    assert subscription.plan_id == "monthly"


@pytest.mark.asyncio
async def test_unexpired_trial_is_left_alone(db, subscriptions):
    await subscriptions.start_trial(db, "tenant-a")
    subscription = await subscriptions.get_status(db, "tenant-a")
    assert subscription.status == SubscriptionStatus.TRIAL


@pytest.mark.asyncio
async def test_cancel_keeps_access_until_period_end(db, subscriptions):
    await subscriptions.start_trial(db, "tenant-a")
    now = utcnow()
    await subscriptions.activate(db, "tenant-a", "monthly", now, now + timedelta(days=30))
    await db.commit()

    subscription = await subscriptions.cancel(db, "tenant-a")

    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.auto_renew is False
    assert subscription.cancelled_at is not None

    summary = await subscriptions.get_status_summary(db, "tenant-a")
    assert summary.is_entitled is True
    assert summary.cancel_at_period_end is True
    assert summary.days_remaining in (29, 30)


@pytest.mark.asyncio
async def test_activate_same_period_twice_is_noop(db, subscriptions):
    await subscriptions.start_trial(db, "tenant-a")
    now = utcnow()
    end = now + timedelta(days=30)

    assert await subscriptions.activate(db, "tenant-a", "monthly", now, end) is True
    await db.commit()
    assert await subscriptions.activate(db, "tenant-a", "monthly", now, end) is False
    await db.commit()

    subscription = await subscriptions.get_status(db, "tenant-a")
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.current_period_end == end


@pytest.mark.asyncio
async def test_activate_without_trial_provisions_tenant(db, subscriptions):
    now = utcnow()
    assert await subscriptions.activate(db, "walk-in", "yearly", now, now + timedelta(days=365)) is True
    await db.commit()

    subscription = await subscriptions.get_status(db, "walk-in")
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.last_payment_at is not None
    assert len(await usage_counter_crud.get_for_tenant(db, "walk-in")) == 4
