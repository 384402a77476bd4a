"""HTTP surface tests with FastAPI's TestClient against a temporary SQLite database."""

import json
from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.auth import create_access_token
from app.core.billing_middleware import AdmissionDependency
from app.core.config import settings
from app.core.database import get_db
from app.main import app
from app.models.usage_counter import ResourceKind
from app.services.stripe_service import stripe_service


@pytest.fixture
def override_db(sync_engine_factory):
    engine = sync_engine_factory()
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    return override_get_db


@pytest.fixture
def client(override_db):
    app.dependency_overrides[get_db] = override_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def auth(tenant_id="tenant-a"):
    return {"Authorization": f"Bearer {create_access_token(tenant_id)}"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_plans_are_public(client):
    response = client.get("/api/subscriptions/plans")
    assert response.status_code == 200
    assert [p["plan_id"] for p in response.json()["plans"]] == ["trial", "monthly", "quarterly", "yearly"]


def test_requires_bearer_token(client):
    assert client.get("/api/subscriptions/status").status_code in (401, 403)


def test_rejects_token_with_wrong_signature(client):
    token = jwt.encode({"tenant_id": "tenant-a"}, "not-the-secret", algorithm="HS256")
    response = client.get("/api/subscriptions/status", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_rejects_token_without_tenant(client):
    token = jwt.encode({"sub": "user-1"}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    response = client.get("/api/subscriptions/status", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_rejects_expired_token(client):
    token = create_access_token("tenant-a", expires_in=timedelta(seconds=-10))
    response = client.get("/api/subscriptions/status", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_trial_status_and_cancel(client):
    response = client.post("/api/subscriptions/trial", headers=auth())
    assert response.status_code == 201
    assert response.json()["status"] == "trial"

    response = client.post("/api/subscriptions/trial", headers=auth())
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "already_provisioned"

    status = client.get("/api/subscriptions/status", headers=auth()).json()
    assert status["is_entitled"] is True
    assert status["plan"]["plan_id"] == "trial"
    assert status["days_remaining"] in (13, 14)

    cancelled = client.post("/api/subscriptions/cancel", headers=auth()).json()
    assert cancelled["cancel_at_period_end"] is True
    assert cancelled["subscription"]["status"] == "trial"


def test_status_without_subscription(client):
    response = client.get("/api/subscriptions/status", headers=auth("nobody"))
    assert response.status_code == 404


def test_admit_release_and_snapshot(client):
    client.post("/api/subscriptions/trial", headers=auth())

    response = client.post("/api/usage/admit", json={"resource_kind": "invoices", "delta": 3}, headers=auth())
    assert response.status_code == 200
    assert response.json()["admitted"] is True
    assert response.json()["current_usage"] == 3

    response = client.post("/api/usage/release", json={"resource_kind": "invoices", "delta": 1}, headers=auth())
    assert response.json()["used"] == 2

    usage = client.get("/api/usage", headers=auth()).json()["usage"]
    assert usage["invoices"] == {"used": 2, "limit": 200, "remaining": 198, "percentage_used": 1.0}
    assert usage["storageMB"]["limit"] == 100


def test_admit_over_limit_is_402(client):
    client.post("/api/subscriptions/trial", headers=auth())

    response = client.post("/api/usage/admit", json={"resource_kind": "products", "delta": 51}, headers=auth())

    assert response.status_code == 402
    detail = response.json()["detail"]
    assert detail["error"] == "limit_reached"
    assert detail["current_usage"] == 0
    assert detail["limit"] == 50


def test_admit_without_subscription_is_402(client):
    response = client.post("/api/usage/admit", json={"resource_kind": "products"}, headers=auth("nobody"))
    assert response.status_code == 402
    assert response.json()["detail"]["error"] == "subscription_inactive"


def test_admit_rejects_zero_delta(client):
    response = client.post("/api/usage/admit", json={"resource_kind": "products", "delta": 0}, headers=auth())
    assert response.status_code == 422


def test_purchase_and_verify_flow(client):
    client.post("/api/subscriptions/trial", headers=auth())

    response = client.post("/api/payments/intents", json={"plan_id": "monthly"}, headers=auth())
    assert response.status_code == 201
    body = response.json()
    intent_id = body["intent"]["id"]
    assert body["intent"]["status"] == "pending"
    assert body["payment"]["upi_url"].startswith("upi://pay?")
    assert f"tr={intent_id}" in body["payment"]["upi_url"]

    assert client.get(f"/api/payments/intents/{intent_id}", headers=auth()).json()["status"] == "pending"

    # Another tenant can neither see nor confirm it
    assert client.get(f"/api/payments/intents/{intent_id}", headers=auth("tenant-b")).status_code == 404
    response = client.post(
        f"/api/payments/intents/{intent_id}/verify",
        json={"external_reference": "UPI123"},
        headers=auth("tenant-b"),
    )
    assert response.status_code == 404

    response = client.post(
        f"/api/payments/intents/{intent_id}/verify",
        json={"external_reference": "UPI123"},
        headers=auth(),
    )
    assert response.status_code == 200
    assert response.json()["outcome"] == "reconciled"
    assert response.json()["subscription"]["status"] == "active"

    again = client.post(
        f"/api/payments/intents/{intent_id}/verify",
        json={"external_reference": "UPI123"},
        headers=auth(),
    )
    assert again.json()["outcome"] == "already_processed"

    status = client.get(f"/api/payments/intents/{intent_id}", headers=auth()).json()
    assert status == {"intent_id": intent_id, "status": "completed", "external_reference": "UPI123"}

    history = client.get("/api/payments/intents", headers=auth()).json()
    assert history["total_count"] == 1


def test_trial_plan_cannot_be_bought(client):
    response = client.post("/api/payments/intents", json={"plan_id": "trial"}, headers=auth())
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "plan_not_purchasable"


def test_unknown_plan_cannot_be_bought(client):
    response = client.post("/api/payments/intents", json={"plan_id": "lifetime"}, headers=auth())
    assert response.status_code == 404


def test_fail_intent(client):
    intent_id = client.post("/api/payments/intents", json={"plan_id": "yearly"}, headers=auth()).json()["intent"]["id"]

    response = client.post(f"/api/payments/intents/{intent_id}/fail", json={"reason": "cancelled"}, headers=auth())

    assert response.json()["outcome"] == "failed"
    assert client.get(f"/api/payments/intents/{intent_id}", headers=auth()).json()["status"] == "failed"


def test_stripe_webhook_requires_signature(client):
    response = client.post("/api/payments/webhook/stripe", content=b"{}")
    assert response.status_code == 400


def test_stripe_webhook_rejects_bad_signature(client):
    response = client.post(
        "/api/payments/webhook/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=bad"}
    )
    assert response.status_code == 400


def test_stripe_webhook_reconciles_once(client):
    client.post("/api/subscriptions/trial", headers=auth())
    intent_id = client.post("/api/payments/intents", json={"plan_id": "monthly"}, headers=auth()).json()["intent"]["id"]
    payload = json.dumps({
        "id": "evt_test_1",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_test_1",
            "client_reference_id": intent_id,
            "payment_status": "paid",
            "payment_intent": "pi_test_1",
        }},
    }).encode()

    with patch.object(stripe_service, "verify_webhook_signature", return_value=True):
        first = client.post("/api/payments/webhook/stripe", content=payload, headers={"stripe-signature": "sig"})
        second = client.post("/api/payments/webhook/stripe", content=payload, headers={"stripe-signature": "sig"})

    assert first.json()["outcome"] == "reconciled"
    assert second.json()["message"] == "Event already processed"
    status = client.get(f"/api/payments/intents/{intent_id}", headers=auth()).json()
    assert status["external_reference"] == "pi_test_1"


def test_admission_dependency_gates_resource_creation(override_db):
    resource_app = FastAPI()

    @resource_app.post("/products")
    async def create_product(admission=Depends(AdmissionDependency(ResourceKind.PRODUCTS, delta=25))):
        return {"used": admission.current_usage}

    app.dependency_overrides[get_db] = override_db
    resource_app.dependency_overrides[get_db] = override_db
    try:
        with TestClient(app) as billing, TestClient(resource_app) as resources:
            billing.post("/api/subscriptions/trial", headers=auth())

            assert resources.post("/products", headers=auth()).json() == {"used": 25}
            assert resources.post("/products", headers=auth()).json() == {"used": 50}

            denied = resources.post("/products", headers=auth())
            assert denied.status_code == 402
            assert denied.json()["detail"]["current_usage"] == 50
    finally:
        app.dependency_overrides.clear()
