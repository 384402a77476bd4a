from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_db
from app.models.usage_counter import ResourceKind
from app.schemas.auth import TokenData
from app.services.admission_service import AdmissionDecision, admission_service


async def check_admission(
    db: AsyncSession,
    tenant_id: str,
    resource_kind: ResourceKind,
    delta: int = 1
) -> AdmissionDecision:
    """
    Reserve quota for a resource the caller is about to create.
    Raises HTTPException 402 if the subscription is inactive or the limit is reached.
    """
    decision = await admission_service.try_admit(db, tenant_id, resource_kind, delta)

    if not decision.admitted:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": decision.reason.value,
                "message": decision.message,
                "current_usage": decision.current_usage,
                "limit": decision.limit
            }
        )

    return decision


class AdmissionDependency:
    """
    FastAPI dependency that reserves quota before a create endpoint runs.

    Usage in router:
    @router.post("/products")
    async def create_product(
        admission: AdmissionDecision = Depends(AdmissionDependency(ResourceKind.PRODUCTS)),
        ...
    ):
        # If the create fails afterwards, give the unit back with admission_service.release()
        ...
    """
    def __init__(self, resource_kind: ResourceKind, delta: int = 1):
        self.resource_kind = resource_kind
        self.delta = delta

    async def __call__(
        self,
        current_user: TokenData = Depends(get_current_user),
        db: AsyncSession = Depends(get_db)
    ) -> AdmissionDecision:
        return await check_admission(db, current_user.tenant_id, self.resource_kind, self.delta)
