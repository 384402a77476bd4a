import json
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_db
from app.core.exceptions import NotFoundError, handle_database_errors
from app.schemas.auth import TokenData
from app.schemas.billing import (
    CreateIntentRequest,
    CreateIntentResponse,
    FailPaymentRequest,
    IntentListResponse,
    IntentStatusResponse,
    PaymentIntentResponse,
    ReconcileResponse,
    SubscriptionResponse,
    VerifyPaymentRequest
)
from app.services.payment_channels import PaymentChannelError
from app.services.payment_service import payment_service
from app.services.reconciliation_service import (
    ReconcileOutcome,
    ReconcileResult,
    reconciliation_service
)
from app.services.stripe_service import stripe_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _reconcile_response(result: ReconcileResult) -> ReconcileResponse:
    if result.outcome == ReconcileOutcome.NOT_FOUND:
        raise NotFoundError("Payment intent")
    if result.outcome == ReconcileOutcome.UNKNOWN_PLAN:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": result.outcome.value, "message": result.message}
        )

    return ReconcileResponse(
        success=True,
        outcome=result.outcome.value,
        message=result.message,
        subscription=SubscriptionResponse.model_validate(result.subscription) if result.subscription else None
    )


@router.post("/intents", response_model=CreateIntentResponse, status_code=201)
@handle_database_errors
async def create_intent(
    request: CreateIntentRequest,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Start a purchase: persist a pending intent and return the payment payload"""
    try:
        intent, payload = await payment_service.create_intent(db, current_user.tenant_id, request.plan_id)
    except PaymentChannelError as e:
        logger.error(f"Payment channel error for tenant {current_user.tenant_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Payment provider error: {e}"
        )

    return CreateIntentResponse(
        success=True,
        intent=PaymentIntentResponse.model_validate(intent),
        payment=payload
    )


@router.get("/intents", response_model=IntentListResponse)
@handle_database_errors
async def list_intents(
    skip: int = 0,
    limit: int = 50,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Payment history for the caller's tenant, newest first"""
    intents, total = await payment_service.list_intents(db, current_user.tenant_id, skip=skip, limit=limit)
    return IntentListResponse(
        success=True,
        intents=[PaymentIntentResponse.model_validate(intent) for intent in intents],
        total_count=total
    )


@router.get("/intents/{intent_id}", response_model=IntentStatusResponse)
@handle_database_errors
async def get_intent_status(
    intent_id: UUID,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Status of one of the caller's intents (polled by the client after checkout)"""
    intent = await payment_service.get_intent(db, intent_id)
    if intent.tenant_id != current_user.tenant_id:
        raise NotFoundError("Payment intent")
    return IntentStatusResponse(
        intent_id=intent.id,
        status=intent.status,
        external_reference=intent.external_reference
    )


@router.post("/intents/{intent_id}/verify", response_model=ReconcileResponse)
@handle_database_errors
async def verify_payment(
    intent_id: UUID,
    request: VerifyPaymentRequest,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Confirm a UPI payment with the transaction id from the payer's app"""
    result = await reconciliation_service.confirm_manually(
        db,
        intent_id,
        request.external_reference,
        tenant_id=current_user.tenant_id
    )
    return _reconcile_response(result)


@router.post("/intents/{intent_id}/fail", response_model=ReconcileResponse)
@handle_database_errors
async def fail_payment(
    intent_id: UUID,
    request: FailPaymentRequest,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark a pending payment as failed (payer abandoned or the app reported a failure)"""
    result = await reconciliation_service.fail(
        db,
        intent_id,
        request.reason,
        tenant_id=current_user.tenant_id
    )
    return _reconcile_response(result)


@router.post("/webhook/stripe")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Handle Stripe webhook events.
    Checkout completions reconcile the referenced intent; expiries and async failures fail it.
    """
    try:
        # Get raw body and signature
        payload = await request.body()
        signature = request.headers.get('stripe-signature')

        if not signature:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing Stripe signature"
            )

        # Verify webhook signature
        if not stripe_service.verify_webhook_signature(payload, signature):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid Stripe signature"
            )

        event = json.loads(payload)
        result = await reconciliation_service.handle_stripe_event(db, event)

        return {
            "success": True,
            "message": "Event already processed" if result["duplicate"] else "Webhook processed successfully",
            "event_id": result["event_id"],
            "outcome": result["outcome"]
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Stripe webhook processing error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Webhook processing error: {str(e)}"
        )
