from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.auth import get_current_user
from app.core.database import get_db
from app.core.exceptions import handle_database_errors
from app.schemas.auth import TokenData
from app.schemas.billing import (
    PlanListResponse,
    StartTrialRequest,
    SubscriptionResponse,
    SubscriptionStatusResponse
)
from app.services.plan_catalog import plan_catalog
from app.services.subscription_service import subscription_service

router = APIRouter()


@router.get("/plans", response_model=PlanListResponse)
async def list_plans():
    """
    Get all available plans.
    Public endpoint - no authentication required.
    """
    return PlanListResponse(plans=plan_catalog.list_plans())


@router.post("/trial", response_model=SubscriptionResponse, status_code=201)
@handle_database_errors
async def start_trial(
    request: Optional[StartTrialRequest] = None,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Provision the caller's tenant with a trial subscription and zeroed usage counters"""
    subscription = await subscription_service.start_trial(
        db,
        current_user.tenant_id,
        request.plan_id if request else None
    )
    return SubscriptionResponse.model_validate(subscription)


@router.get("/status", response_model=SubscriptionStatusResponse)
@handle_database_errors
async def get_status(
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Current subscription, with lazy expiry applied"""
    return await subscription_service.get_status_summary(db, current_user.tenant_id)


@router.post("/cancel", response_model=SubscriptionStatusResponse)
@handle_database_errors
async def cancel_subscription(
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Stop auto-renew. Access continues until the current period ends."""
    await subscription_service.cancel(db, current_user.tenant_id)
    return await subscription_service.get_status_summary(db, current_user.tenant_id)
