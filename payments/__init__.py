"""Payments module for transaction status polling and subscription plans.

Payment gateways write the transactions table; this module only reads
transaction outcomes and turns a completed payment into an active plan.
"""

import logging
from typing import Any, Dict, List, Optional

from database import get_client

logger = logging.getLogger(__name__)

COMPLETED_STATUS = "completed"
ACTIVE_STATUS = "active"

class PaymentError(Exception):
    """Base exception for payment operations."""
    pass

class TransactionNotFoundError(PaymentError):
    """Raised when a transaction is not found."""
    pass

class TransactionNotCompletedError(PaymentError):
    """Raised when a subscription is bought with an unfinished transaction."""
    pass

class TransactionOwnershipError(PaymentError):
    """Raised when a transaction belongs to another user."""
    pass

class TransactionAlreadyUsedError(PaymentError):
    """Raised when a transaction has already paid for a subscription."""
    pass

class PlanNotFoundError(PaymentError):
    """Raised when a plan is not found."""
    pass

class PaymentManager:
    """Manager class for transactions and subscriptions."""

    def __init__(self, client=None):
        self.client = client

    async def ensure_client(self):
        """Ensure we have a platform client."""
        if not self.client:
            self.client = await get_client()

    async def get_transaction(self, transaction_id: str) -> Dict[str, Any]:
        """Get a transaction by ID.

        Raises:
            TransactionNotFoundError: If transaction doesn't exist
        """
        await self.ensure_client()

        response = await (
            self.client.table("transactions")
            .select("id, status, user_id, amount")
            .eq("id", transaction_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise TransactionNotFoundError("Transaction not found")
        return response.data[0]

    async def get_transaction_status(self, transaction_id: str) -> str:
        """Get the status of a transaction.

        Raises:
            TransactionNotFoundError: If transaction doesn't exist
        """
        transaction = await self.get_transaction(transaction_id)
        return transaction['status']

    async def get_plan(self, plan_id: str) -> Dict[str, Any]:
        """Get a plan by ID.

        Raises:
            PlanNotFoundError: If plan doesn't exist
        """
        await self.ensure_client()

        response = await (
            self.client.table("plans")
            .select("*")
            .eq("id", plan_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise PlanNotFoundError("Plan not found")
        return response.data[0]

    async def get_plans(self) -> List[Dict[str, Any]]:
        """Get all plans, cheapest first."""
        await self.ensure_client()

        response = await self.client.table("plans").select("*").order("price").execute()
        return response.data or []

    async def get_active_subscription(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get the user's active subscription with its plan under 'plans'."""
        await self.ensure_client()

        response = await (
            self.client.table("subscriptions")
            .select("*")
            .eq("user_id", user_id)
            .eq("status", ACTIVE_STATUS)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None

        subscription = dict(response.data[0])
        try:
            subscription['plans'] = await self.get_plan(subscription.get('plan_id'))
        except PlanNotFoundError:
            logger.warning(f"Subscription {subscription.get('id')} refers to a missing plan")
            subscription['plans'] = None
        return subscription

    async def get_subscription_overview(self, user_id: str) -> Dict[str, Any]:
        """Get the user's current subscription and every available plan."""
        return {
            'currentSubscription': await self.get_active_subscription(user_id),
            'availablePlans': await self.get_plans(),
        }

    async def activate_subscription(self, user_id: str, plan_id: str, transaction_id: str) -> Dict[str, Any]:
        """Activate a plan paid for by a completed transaction.

        Creates an active subscription and points the user's profile at the plan.

        Returns:
            The created subscription

        Raises:
            TransactionNotFoundError: If transaction doesn't exist
            TransactionOwnershipError: If the transaction is not the user's
            TransactionNotCompletedError: If the transaction has not completed
            TransactionAlreadyUsedError: If the transaction already paid for a subscription
        """
        transaction = await self.get_transaction(transaction_id)
        if transaction.get('user_id') != user_id:
            raise TransactionOwnershipError("Transaction belongs to another user")
        if transaction['status'] != COMPLETED_STATUS:
            raise TransactionNotCompletedError(
                f"Transaction is {transaction['status']}, not {COMPLETED_STATUS}"
            )

        existing = await (
            self.client.table("subscriptions")
            .select("id")
            .eq("transaction_id", transaction_id)
            .limit(1)
            .execute()
        )
        if existing.data:
            raise TransactionAlreadyUsedError("Transaction has already been used")

        response = await self.client.table("subscriptions").insert({
            "user_id": user_id,
            "plan_id": plan_id,
            "transaction_id": transaction_id,
            "status": ACTIVE_STATUS,
            "end_date": None,
        }).execute()
        if not response.data:
            raise PaymentError("Failed to create subscription")

        await (
            self.client.table("profiles")
            .update({"current_plan_id": plan_id, "subscription_status": ACTIVE_STATUS})
            .eq("id", user_id)
            .execute()
        )

        logger.info(f"Plan {plan_id} activated for user {user_id}")
        return response.data[0]

__all__ = [
    'PaymentManager',
    'PaymentError',
    'TransactionNotFoundError',
    'TransactionNotCompletedError',
    'TransactionOwnershipError',
    'TransactionAlreadyUsedError',
    'PlanNotFoundError',
]
