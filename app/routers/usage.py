from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.billing_middleware import check_admission
from app.core.database import get_db
from app.core.exceptions import handle_database_errors
from app.schemas.auth import TokenData
from app.schemas.billing import (
    AdmissionRequest,
    AdmissionResponse,
    ReleaseResponse,
    UsageSnapshotResponse
)
from app.services.admission_service import admission_service

router = APIRouter()


@router.get("", response_model=UsageSnapshotResponse)
@handle_database_errors
async def get_usage(
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Usage against plan limits for every metered resource"""
    return await admission_service.get_usage_snapshot(db, current_user.tenant_id)


@router.post("/admit", response_model=AdmissionResponse)
@handle_database_errors
async def admit(
    request: AdmissionRequest,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Reserve quota before creating a resource.
    Returns 402 with the current usage and limit when the request is denied.
    """
    decision = await check_admission(db, current_user.tenant_id, request.resource_kind, request.delta)
    return AdmissionResponse(
        admitted=True,
        current_usage=decision.current_usage,
        limit=decision.limit,
        message=decision.message
    )


@router.post("/release", response_model=ReleaseResponse)
@handle_database_errors
async def release(
    request: AdmissionRequest,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Give quota back after a resource was deleted"""
    used = await admission_service.release(db, current_user.tenant_id, request.resource_kind, request.delta)
    return ReleaseResponse(success=True, resource_kind=request.resource_kind, used=used)
