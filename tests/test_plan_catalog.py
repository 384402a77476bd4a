"""Tests for the plan catalog."""

import json
from decimal import Decimal

import pytest

from app.core.exceptions import UnknownPlanError
from app.schemas.billing import PlanDefinition, ResourceKindEnum
from app.services.plan_catalog import DEFAULT_PLANS, PlanCatalog


def test_default_catalog_has_four_plans():
    catalog = PlanCatalog.from_dicts(DEFAULT_PLANS)
    assert [p.plan_id for p in catalog.list_plans()] == ["trial", "monthly", "quarterly", "yearly"]


def test_default_prices_and_durations():
    catalog = PlanCatalog.from_dicts(DEFAULT_PLANS)
    monthly = catalog.get_plan("monthly")
    assert monthly.price == Decimal("999")
    assert monthly.duration_days == 30
    assert catalog.get_plan("yearly").duration_days == 365
    assert catalog.get_plan("trial").purchasable is False


def test_limit_lookup_accepts_enum_or_string():
    plan = PlanCatalog.from_dicts(DEFAULT_PLANS).get_plan("quarterly")
    assert plan.limit_for(ResourceKindEnum.INVOICES) == 15000
    assert plan.limit_for("storageMB") == 2000


def test_unknown_plan_raises():
    catalog = PlanCatalog.from_dicts(DEFAULT_PLANS)
    with pytest.raises(UnknownPlanError) as exc:
        catalog.get_plan("lifetime")
    assert exc.value.status_code == 404
    assert exc.value.detail["error"] == "unknown_plan"
    assert catalog.has_plan("lifetime") is False


def test_duplicate_plan_ids_rejected():
    with pytest.raises(ValueError):
        PlanCatalog.from_dicts([DEFAULT_PLANS[1], DEFAULT_PLANS[1]])


def test_plans_are_immutable():
    plan = PlanCatalog.from_dicts(DEFAULT_PLANS).get_plan("monthly")
    with pytest.raises(Exception):
        plan.price = Decimal("1")


def test_plan_limits_cannot_be_changed_in_place():
    catalog = PlanCatalog.from_dicts(DEFAULT_PLANS)
    plan = catalog.get_plan("monthly")

    with pytest.raises(TypeError):
        plan.limits[ResourceKindEnum.PRODUCTS] = 1
    with pytest.raises(TypeError):
        plan.limits.update({ResourceKindEnum.PRODUCTS: 1})
    with pytest.raises(TypeError):
        del plan.limits[ResourceKindEnum.INVOICES]

    assert catalog.get_plan("monthly").limit_for("products") == 500
    assert plan.model_dump(mode="json")["limits"]["products"] == 500


def test_reload_swaps_table_and_keeps_held_plans():
    catalog = PlanCatalog.from_dicts(DEFAULT_PLANS)
    held = catalog.get_plan("monthly")

    cheaper = PlanDefinition(**{**DEFAULT_PLANS[1], "price": Decimal("499")})
    catalog.reload([cheaper])

    assert catalog.get_plan("monthly").price == Decimal("499")
    assert held.price == Decimal("999")
    assert catalog.has_plan("yearly") is False


def test_load_from_json_file(tmp_path):
    path = tmp_path / "plans.json"
    path.write_text(json.dumps([
        {
            "plan_id": "starter",
            "name": "Starter",
            "price": "199.00",
            "duration_days": 30,
            "limits": {"products": 20, "customers": 40, "invoices": 80, "storageMB": 50},
        }
    ]))

    catalog = PlanCatalog.from_file(str(path))
    plan = catalog.get_plan("starter")
    assert plan.price == Decimal("199.00")
    assert plan.limit_for("customers") == 40
    assert plan.purchasable is True
