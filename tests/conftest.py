"""Shared fixtures: a throwaway SQLite database per test and a small plan catalog."""

import asyncio
import copy

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.models import Base
from app.services.admission_service import AdmissionService
from app.services.payment_channels import UpiChannel
from app.services.payment_service import PaymentService
from app.services.plan_catalog import DEFAULT_PLANS, PlanCatalog
from app.services.reconciliation_service import ReconciliationService
from app.services.stripe_service import StripeService
from app.services.subscription_service import SubscriptionService

TRIAL_PRODUCT_LIMIT = 10


def make_engine(db_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    # Take the write lock up front so concurrent writers queue on the busy timeout
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


async def create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def make_catalog() -> PlanCatalog:
    plans = copy.deepcopy(DEFAULT_PLANS)
    plans[0]["limits"]["products"] = TRIAL_PRODUCT_LIMIT
    return PlanCatalog.from_dicts(plans)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = make_engine(tmp_path / "billing.db")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def catalog():
    return make_catalog()


@pytest.fixture
def subscriptions(catalog):
    return SubscriptionService(catalog)


@pytest.fixture
def admission(catalog, subscriptions):
    return AdmissionService(catalog, subscriptions)


@pytest.fixture
def upi_channel():
    return UpiChannel(vpa="shop@okbank", payee_name="Shop Billing", currency="INR")


@pytest.fixture
def payments(catalog, upi_channel):
    return PaymentService(catalog, channel=upi_channel)


@pytest.fixture
def reconciler(catalog, subscriptions):
    return ReconciliationService(
        catalog,
        subscriptions,
        StripeService(),
        max_attempts=3,
        retry_delay_seconds=0,
    )


@pytest.fixture
def sync_engine_factory(tmp_path):
    """For TestClient tests, which run the app on their own event loop."""
    def factory():
        engine = make_engine(tmp_path / "api.db")
        asyncio.run(create_schema(engine))
        return engine
    return factory


@pytest.fixture
def product_limit(catalog):
    return catalog.get_plan("trial").limit_for("products")
