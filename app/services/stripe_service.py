import asyncio
import logging
import stripe
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from app.core.config import Settings
from app.core.exceptions import (
    ProviderAuthError,
    ProviderRequestError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from app.schemas.subscription import ProviderName, SubscriptionStatus
from app.services.provider_client import (
    ActionResult,
    CreatedSubscription,
    PortalSession,
    ProviderSubscriptionState,
    mask,
    normalize_with,
)

logger = logging.getLogger(__name__)

STRIPE_STATUSES = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "open": SubscriptionStatus.PENDING,
    "incomplete": SubscriptionStatus.PENDING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.SUSPENDED,
    "canceled": SubscriptionStatus.CANCELLED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
    "expired": SubscriptionStatus.EXPIRED,
}


@dataclass(frozen=True)
class StripeConfig:
    secret_key: Optional[str]
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeConfig":
        return cls(secret_key=settings.stripe_secret_key, timeout=settings.provider_timeout)


def _from_timestamp(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class StripeService:
    """Stripe Checkout / Billing Portal client"""

    name = ProviderName.STRIPE

    def __init__(self, config: StripeConfig):
        self.config = config

    async def _call(self, label: str, func: Callable, *args, **kwargs) -> Any:
        """Run a blocking SDK call in a worker thread under the provider timeout"""
        if not self.config.secret_key:
            raise ProviderAuthError("Stripe configuration error: STRIPE_SECRET_KEY is missing")
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, api_key=self.config.secret_key, **kwargs),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError:
            raise ProviderTimeoutError(f"{label}: Stripe did not respond within {self.config.timeout}s")
        except stripe.AuthenticationError as e:
            raise ProviderAuthError(f"{label}: {e.user_message or str(e)}")
        except stripe.StripeError as e:
            raise ProviderRequestError(
                f"{label}: {e.user_message or str(e)}",
                upstream_status=getattr(e, "http_status", None),
            )

    async def create_subscription(
        self,
        plan_ref: str,
        tenant_id: str,
        tenant_email: str,
        return_url: str,
        cancel_url: str,
    ) -> CreatedSubscription:
        """Create a Checkout session in subscription mode; the session id is the approval handle"""
        logger.info(f"Creating Stripe checkout session: price={plan_ref} tenant={tenant_id}")
        session = await self._call(
            "Failed to create checkout session",
            stripe.checkout.Session.create,
            payment_method_types=["card"],
            line_items=[{"price": plan_ref, "quantity": 1}],
            mode="subscription",
            success_url=return_url,
            cancel_url=cancel_url,
            customer_email=tenant_email,
            client_reference_id=tenant_id,
            metadata={"userId": tenant_id},
            subscription_data={"metadata": {"userId": tenant_id}},
        )
        if not session or not session.get("id"):
            raise ProviderResponseError("Invalid session response - missing session ID")
        if not session.get("url"):
            raise ProviderResponseError("Invalid session response - missing checkout URL")

        logger.info(f"Checkout session created: {session['id']}")
        return CreatedSubscription(
            provider_subscription_id=session["id"],
            approval_url=session["url"],
            raw_status=session.get("status") or "open",
        )

    async def fetch_subscription(self, provider_subscription_id: str) -> ProviderSubscriptionState:
        metadata: Dict[str, Any] = {}
        subscription_id = provider_subscription_id

        if provider_subscription_id.startswith("cs_"):
            session = await self._call(
                "Failed to get checkout session",
                stripe.checkout.Session.retrieve,
                provider_subscription_id,
            )
            metadata["checkout_session_id"] = provider_subscription_id
            subscription_id = session.get("subscription")
            if isinstance(subscription_id, dict):
                subscription_id = subscription_id.get("id")
            if not subscription_id:
                # Payer has not completed checkout yet
                return ProviderSubscriptionState(
                    raw_status=session.get("status") or "open",
                    period_start=None,
                    period_end=None,
                    plan_ref=None,
                    metadata=metadata,
                )

        subscription = await self._call(
            "Failed to get subscription details",
            stripe.Subscription.retrieve,
            subscription_id,
        )
        if not subscription.get("status"):
            raise ProviderResponseError("Stripe subscription response has no status")

        items = (subscription.get("items") or {}).get("data") or []
        first_item = items[0] if items else {}
        price = first_item.get("price") or {}
        metadata["customer_id"] = subscription.get("customer")

        return ProviderSubscriptionState(
            raw_status=subscription["status"],
            period_start=_from_timestamp(
                subscription.get("current_period_start") or first_item.get("current_period_start")
            ),
            period_end=_from_timestamp(
                subscription.get("current_period_end") or first_item.get("current_period_end")
            ),
            plan_ref=price.get("id"),
            provider_subscription_id=subscription.get("id") or subscription_id,
            metadata=metadata,
        )

    async def cancel_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        await self._call(
            "Stripe cancellation failed",
            stripe.Subscription.cancel,
            provider_subscription_id,
            cancellation_details={"comment": reason},
        )
        logger.info(f"Stripe subscription cancelled: {provider_subscription_id}")
        return ActionResult(success=True, message="Subscription cancelled successfully")

    async def suspend_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        await self._call(
            "Stripe suspension failed",
            stripe.Subscription.modify,
            provider_subscription_id,
            pause_collection={"behavior": "void"},
            metadata={"suspend_reason": reason},
        )
        logger.info(f"Stripe subscription paused: {provider_subscription_id}")
        return ActionResult(success=True, message="Subscription suspended successfully")

    async def activate_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        # An empty string unsets pause_collection
        await self._call(
            "Stripe activation failed",
            stripe.Subscription.modify,
            provider_subscription_id,
            pause_collection="",
            metadata={"activate_reason": reason},
        )
        logger.info(f"Stripe subscription resumed: {provider_subscription_id}")
        return ActionResult(success=True, message="Subscription activated successfully")

    async def create_portal_session(self, ref: str, return_url: str) -> PortalSession:
        """Open a Billing Portal session for a customer id or a subscription id"""
        customer_id = ref
        if ref.startswith("sub_"):
            subscription = await self._call(
                "Failed to get subscription details",
                stripe.Subscription.retrieve,
                ref,
            )
            customer_id = subscription.get("customer")
            if not customer_id:
                raise ProviderResponseError(f"Subscription {ref} has no customer")

        session = await self._call(
            "Failed to create portal session",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )
        if not session or not session.get("url"):
            raise ProviderResponseError("Invalid portal response - missing portal URL")
        logger.info(f"Portal session created for customer: {customer_id}")
        return PortalSession(url=session["url"])

    def normalize_status(self, raw_status: Optional[str]) -> SubscriptionStatus:
        return normalize_with(STRIPE_STATUSES, raw_status)

    async def diagnostics(self) -> Dict[str, Any]:
        report: Dict[str, Any] = {
            "provider": self.name.value,
            "hasSecretKey": bool(self.config.secret_key),
            "secretKeyPrefix": mask(self.config.secret_key),
        }
        if not self.config.secret_key:
            report["initialized"] = False
            report["initError"] = "No secret key found"
            return report

        try:
            account = await self._call("Stripe account lookup failed", stripe.Account.retrieve)
            report["initialized"] = True
            report["apiWorking"] = True
            report["accountId"] = account.get("id")
        except (ProviderAuthError, ProviderRequestError) as e:
            report["initialized"] = False
            report["apiWorking"] = False
            report["apiError"] = e.detail
        return report
