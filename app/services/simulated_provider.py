import itertools
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from app.core.exceptions import ProviderRequestError
from app.schemas.subscription import ProviderName, SubscriptionStatus, utcnow
from app.services.paypal_service import PAYPAL_STATUSES
from app.services.provider_client import (
    ActionResult,
    CreatedSubscription,
    PortalSession,
    ProviderSubscriptionState,
    normalize_with,
)

logger = logging.getLogger(__name__)


class SimulatedProvider:
    """
    In-memory provider double for development and tests.

    Subscriptions start APPROVAL_PENDING; call approve() to play the payer
    completing the hosted flow. Uses the PayPal status vocabulary.
    """

    def __init__(self, name: ProviderName = ProviderName.PAYPAL, base_url: str = "https://simulated.pay"):
        self.name = name
        self.base_url = base_url
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self._ids = itertools.count(1)

    def approve(self, provider_subscription_id: str):
        self._get(provider_subscription_id)["status"] = "ACTIVE"

    def _get(self, provider_subscription_id: str) -> Dict[str, Any]:
        if provider_subscription_id not in self.subscriptions:
            raise ProviderRequestError(
                f"Subscription {provider_subscription_id} not found", upstream_status=404
            )
        return self.subscriptions[provider_subscription_id]

    def _transition(self, provider_subscription_id: str, allowed_from: tuple, target: str):
        record = self._get(provider_subscription_id)
        if record["status"] not in allowed_from:
            raise ProviderRequestError(
                f"Subscription status is {record['status']}; cannot move to {target}",
                upstream_status=422,
            )
        record["status"] = target

    async def create_subscription(
        self,
        plan_ref: str,
        tenant_id: str,
        tenant_email: str,
        return_url: str,
        cancel_url: str,
    ) -> CreatedSubscription:
        self.calls.append("create_subscription")
        subscription_id = f"SIM-{next(self._ids)}"
        self.subscriptions[subscription_id] = {
            "status": "APPROVAL_PENDING",
            "plan_ref": plan_ref,
            "tenant_id": tenant_id,
            "email": tenant_email,
            "start": utcnow(),
        }
        logger.info(f"Simulated subscription created: {subscription_id}")
        return CreatedSubscription(
            provider_subscription_id=subscription_id,
            approval_url=f"{self.base_url}/approve/{subscription_id}",
            raw_status="APPROVAL_PENDING",
        )

    async def fetch_subscription(self, provider_subscription_id: str) -> ProviderSubscriptionState:
        self.calls.append("fetch_subscription")
        record = self._get(provider_subscription_id)
        return ProviderSubscriptionState(
            raw_status=record["status"],
            period_start=record["start"],
            period_end=record["start"] + timedelta(days=30),
            plan_ref=record["plan_ref"],
            metadata={"simulated": True},
        )

    async def cancel_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        self.calls.append("cancel_subscription")
        self._transition(provider_subscription_id, ("ACTIVE", "SUSPENDED"), "CANCELLED")
        return ActionResult(success=True, message="Subscription cancelled successfully")

    async def suspend_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        self.calls.append("suspend_subscription")
        self._transition(provider_subscription_id, ("ACTIVE",), "SUSPENDED")
        return ActionResult(success=True, message="Subscription suspended successfully")

    async def activate_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        self.calls.append("activate_subscription")
        self._transition(provider_subscription_id, ("SUSPENDED",), "ACTIVE")
        return ActionResult(success=True, message="Subscription activated successfully")

    async def create_portal_session(self, ref: str, return_url: str) -> PortalSession:
        self.calls.append("create_portal_session")
        return PortalSession(url=f"{self.base_url}/portal?return_url={return_url}", degraded=True)

    def normalize_status(self, raw_status: Optional[str]) -> SubscriptionStatus:
        return normalize_with(PAYPAL_STATUSES, raw_status)

    async def diagnostics(self) -> Dict[str, Any]:
        return {
            "provider": self.name.value,
            "simulated": True,
            "initialized": True,
            "apiWorking": True,
            "subscriptions": len(self.subscriptions),
        }
