import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from app.core.config import settings
from app.core.exceptions import UnknownPlanError
from app.schemas.billing import PlanDefinition

logger = logging.getLogger(__name__)


DEFAULT_PLANS: List[dict] = [
    {
        "plan_id": "trial",
        "name": "Free Trial",
        "price": Decimal("0"),
        "duration_days": 14,
        "limits": {"products": 50, "customers": 100, "invoices": 200, "storageMB": 100},
        "features": [
            "Up to 50 products",
            "Up to 100 customers",
            "Basic inventory management",
            "Email support",
            "14-day free trial",
        ],
        "purchasable": False,
    },
    {
        "plan_id": "monthly",
        "name": "Monthly Pro",
        "price": Decimal("999"),
        "duration_days": 30,
        "limits": {"products": 500, "customers": 1000, "invoices": 5000, "storageMB": 500},
        "features": [
            "Up to 500 products",
            "Up to 1000 customers",
            "Advanced inventory management",
            "GST billing & reporting",
            "Priority email support",
            "Basic analytics",
        ],
    },
    {
        "plan_id": "quarterly",
        "name": "Quarterly Business",
        "price": Decimal("2599"),
        "duration_days": 90,
        "limits": {"products": 2000, "customers": 5000, "invoices": 15000, "storageMB": 2000},
        "features": [
            "Up to 2000 products",
            "Up to 5000 customers",
            "Advanced analytics & reports",
            "Multi-user access (up to 3)",
            "Phone + email support",
            "Custom branding",
        ],
    },
    {
        "plan_id": "yearly",
        "name": "Yearly Enterprise",
        "price": Decimal("8999"),
        "duration_days": 365,
        "limits": {"products": 10000, "customers": 25000, "invoices": 50000, "storageMB": 5000},
        "features": [
            "Unlimited products",
            "Unlimited customers",
            "Advanced AI analytics",
            "Multi-user access (up to 10)",
            "24/7 priority support",
            "Custom integrations",
            "Dedicated account manager",
        ],
    },
]


class PlanCatalog:
    """
    Read-only table of plan definitions.

    Plans are frozen pydantic models. reload() builds a complete new table and
    swaps it in with a single assignment, so a request that already holds a
    PlanDefinition keeps seeing the limits it started with.
    """

    def __init__(self, plans: Optional[List[PlanDefinition]] = None):
        self._plans: Mapping[str, PlanDefinition] = self._index(plans or [])

    @staticmethod
    def _index(plans: List[PlanDefinition]) -> Dict[str, PlanDefinition]:
        table: Dict[str, PlanDefinition] = {}
        for plan in plans:
            if plan.plan_id in table:
                raise ValueError(f"Duplicate plan id in catalog: {plan.plan_id}")
            table[plan.plan_id] = plan
        return table

    @classmethod
    def from_dicts(cls, raw_plans: List[dict]) -> "PlanCatalog":
        return cls([PlanDefinition(**raw) for raw in raw_plans])

    @classmethod
    def from_file(cls, path: str) -> "PlanCatalog":
        """Load a catalog from a JSON file holding a list of plan objects"""
        with Path(path).open("r", encoding="utf-8") as fh:
            raw_plans = json.load(fh)
        return cls.from_dicts(raw_plans)

    @classmethod
    def from_settings(cls) -> "PlanCatalog":
        if settings.plan_catalog_path:
            logger.info(f"Loading plan catalog from {settings.plan_catalog_path}")
            return cls.from_file(settings.plan_catalog_path)
        return cls.from_dicts(DEFAULT_PLANS)

    def get_plan(self, plan_id: str) -> PlanDefinition:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise UnknownPlanError(plan_id)
        return plan

    def has_plan(self, plan_id: str) -> bool:
        return plan_id in self._plans

    def list_plans(self) -> List[PlanDefinition]:
        return list(self._plans.values())

    def reload(self, plans: List[PlanDefinition]) -> None:
        """Replace the whole table atomically"""
        table = self._index(plans)
        self._plans = table
        logger.info(f"Plan catalog reloaded with {len(table)} plans")


# Loaded once at process start
plan_catalog = PlanCatalog.from_settings()
