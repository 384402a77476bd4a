from fastapi import HTTPException, status
from functools import wraps
from typing import Callable

class DatabaseError(HTTPException):
    """Custom exception for database errors"""
    def __init__(self, detail: str = "Database operation failed"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)

class NotFoundError(HTTPException):
    """Custom exception for not found errors"""
    code = "not_found"

    def __init__(self, resource: str = "Resource"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=f"{resource} not found")

class ValidationError(HTTPException):
    """Custom exception for validation errors"""
    def __init__(self, detail: str = "Validation failed"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class BillingError(HTTPException):
    """Expected, user-actionable billing outcome carrying a machine-readable code"""
    code = "billing_error"

    def __init__(self, status_code: int, message: str):
        super().__init__(status_code=status_code, detail={"error": self.code, "message": message})
        self.message = message


class UnknownPlanError(BillingError):
    code = "unknown_plan"

    def __init__(self, plan_id: str):
        super().__init__(status.HTTP_404_NOT_FOUND, f"Plan '{plan_id}' is not in the catalog")
        self.plan_id = plan_id


class PlanNotPurchasableError(BillingError):
    code = "plan_not_purchasable"

    def __init__(self, plan_id: str):
        super().__init__(status.HTTP_400_BAD_REQUEST, f"Plan '{plan_id}' cannot be purchased")
        self.plan_id = plan_id


class ManualConfirmationNotAllowedError(BillingError):
    code = "manual_confirmation_not_allowed"

    def __init__(self, channel: str):
        super().__init__(
            status.HTTP_409_CONFLICT,
            f"Payments through {channel} are confirmed by the provider, not by the payer"
        )
        self.channel = channel


class AlreadyProvisionedError(BillingError):
    code = "already_provisioned"

    def __init__(self, tenant_id: str):
        super().__init__(status.HTTP_409_CONFLICT, f"Tenant '{tenant_id}' already has a subscription")
        self.tenant_id = tenant_id


def handle_database_errors(func: Callable) -> Callable:
    """Decorator to handle database errors"""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except HTTPException:
            raise
        except Exception as e:
            raise DatabaseError(f"Database operation failed: {str(e)}")
    return wrapper
