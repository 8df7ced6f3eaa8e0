"""
Payment provider client contract.

Every provider (Stripe, PayPal, the simulated double) exposes the same
operations and normalizes its results into the dataclasses below, so the
billing service never touches a provider's wire format.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Protocol

from app.schemas.subscription import ProviderName, SubscriptionStatus


@dataclass
class CreatedSubscription:
    provider_subscription_id: str
    approval_url: str
    raw_status: str


@dataclass
class ProviderSubscriptionState:
    raw_status: str
    period_start: Optional[datetime]
    period_end: Optional[datetime]
    plan_ref: Optional[str]
    # Set when the authoritative id differs from the one we were handed
    # (e.g. a Stripe checkout session resolving to its subscription)
    provider_subscription_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ActionResult:
    success: bool
    message: str


@dataclass
class PortalSession:
    url: str
    # True when the provider has no hosted portal and we hand back a static page
    degraded: bool = False


class ProviderClient(Protocol):
    """Operations every payment provider must satisfy."""

    name: ProviderName

    async def create_subscription(
        self,
        plan_ref: str,
        tenant_id: str,
        tenant_email: str,
        return_url: str,
        cancel_url: str,
    ) -> CreatedSubscription:
        """
        Start a subscription and return the hosted approval URL.

        Raises:
            ProviderAuthError: credentials missing or rejected
            ProviderRequestError: the provider rejected the request
            ProviderResponseError: no approval link / session id in the response
        """
        ...

    async def fetch_subscription(self, provider_subscription_id: str) -> ProviderSubscriptionState:
        """Re-read authoritative subscription state from the provider."""
        ...

    async def cancel_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        ...

    async def suspend_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        ...

    async def activate_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        ...

    async def create_portal_session(self, ref: str, return_url: str) -> PortalSession:
        ...

    def normalize_status(self, raw_status: Optional[str]) -> SubscriptionStatus:
        ...

    async def diagnostics(self) -> Dict[str, Any]:
        ...


def normalize_with(mapping: Mapping[str, SubscriptionStatus], raw_status: Optional[str]) -> SubscriptionStatus:
    if not raw_status:
        return SubscriptionStatus.UNKNOWN
    return mapping.get(raw_status.strip().lower(), SubscriptionStatus.UNKNOWN)


def mask(value: Optional[str]) -> str:
    return f"{value[:8]}..." if value else "missing"
