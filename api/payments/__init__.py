"""Payment status and subscription API endpoints."""

import logging
from fastapi import APIRouter, HTTPException, status, Depends
from typing import Optional
from uuid import UUID
from pydantic import BaseModel

from payments import (
    PaymentManager, PaymentError, TransactionNotFoundError,
    TransactionNotCompletedError, TransactionOwnershipError,
    TransactionAlreadyUsedError
)
from listings import (
    ListingManager, PlanLimitError, PlanLimitExceededError, APIError
)
from auth import Session, get_session, get_current_user
from api.system import rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/payments",
    tags=["Payments"]
)

class ActivateSubscriptionRequest(BaseModel):
    """Request model for activating a paid plan."""
    planId: UUID
    transactionId: UUID

@router.get("/status")
async def transaction_status(
    transactionId: Optional[str] = None,
    session: Session = Depends(get_session)
):
    """Poll the status of a payment transaction."""
    if not transactionId:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Transaction ID is required"
        )

    try:
        return {"status": await PaymentManager(session.client).get_transaction_status(transactionId)}
    except TransactionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found"
        )
    except APIError as e:
        logger.error(f"Error fetching transaction status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch transaction status"
        )

@router.get("/subscriptions")
async def subscriptions(session: Session = Depends(get_current_user)):
    """Get the caller's active subscription and all available plans."""
    return await PaymentManager(session.client).get_subscription_overview(session.user_id)

@router.post("/subscriptions", dependencies=[Depends(rate_limit)])
async def activate_subscription(
    request: ActivateSubscriptionRequest,
    session: Session = Depends(get_current_user)
):
    """Activate a plan paid for by a completed transaction."""
    try:
        subscription = await PaymentManager(session.client).activate_subscription(
            session.user_id, str(request.planId), str(request.transactionId)
        )
    except TransactionNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except TransactionOwnershipError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e)
        )
    except (TransactionNotCompletedError, TransactionAlreadyUsedError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except PaymentError as e:
        logger.error(f"Error creating subscription: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create subscription"
        )

    return {
        "message": "Subscription activated successfully",
        "subscription": subscription,
    }

@router.get("/subscriptions/limits")
async def plan_limits(session: Session = Depends(get_current_user)):
    """Check whether the caller may publish another listing under their plan."""
    try:
        return await ListingManager(session.client).check_plan_limit(session.user_id)
    except PlanLimitExceededError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e)
        )
    except PlanLimitError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
