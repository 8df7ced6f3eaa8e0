import httpx
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

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

API_BASE_URLS = {
    "live": "https://api-m.paypal.com",
    "sandbox": "https://api-m.sandbox.paypal.com",
}
WEB_BASE_URLS = {
    "live": "https://www.paypal.com",
    "sandbox": "https://www.sandbox.paypal.com",
}

PAYPAL_STATUSES = {
    "approval_pending": SubscriptionStatus.PENDING,
    "approved": SubscriptionStatus.PENDING,
    "active": SubscriptionStatus.ACTIVE,
    "suspended": SubscriptionStatus.SUSPENDED,
    "cancelled": SubscriptionStatus.CANCELLED,
    "expired": SubscriptionStatus.EXPIRED,
}


@dataclass(frozen=True)
class PayPalConfig:
    client_id: Optional[str]
    client_secret: Optional[str]
    environment: str = "sandbox"
    brand_name: str = "Smart Review SaaS"
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PayPalConfig":
        return cls(
            client_id=settings.paypal_client_id,
            client_secret=settings.paypal_client_secret,
            environment=settings.paypal_environment,
            brand_name=settings.brand_name,
            timeout=settings.provider_timeout,
        )

    @property
    def base_url(self) -> str:
        return API_BASE_URLS["live" if self.environment == "live" else "sandbox"]

    @property
    def management_url(self) -> str:
        web = WEB_BASE_URLS["live" if self.environment == "live" else "sandbox"]
        return f"{web}/myaccount/autopay/"


def parse_paypal_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class PayPalService:
    """PayPal Subscriptions REST client (OAuth client-credentials + bearer token)"""

    name = ProviderName.PAYPAL

    def __init__(self, config: PayPalConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            transport=self._transport,
        )

    def _check_credentials(self):
        if not self.config.client_id:
            raise ProviderAuthError("PayPal credentials not configured: PAYPAL_CLIENT_ID is missing")
        if not self.config.client_secret:
            raise ProviderAuthError("PayPal credentials not configured: PAYPAL_CLIENT_SECRET is missing")

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        """Client-credentials exchange; fetched fresh for every logical operation"""
        self._check_credentials()
        response = await client.post(
            "/v1/oauth2/token",
            auth=(self.config.client_id, self.config.client_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            content="grant_type=client_credentials",
        )
        if response.status_code != 200:
            raise ProviderAuthError(
                f"Failed to get PayPal access token: {response.status_code} {response.reason_phrase}"
            )
        token = response.json().get("access_token")
        if not token:
            raise ProviderAuthError("Failed to get PayPal access token: no token in response")
        return token

    async def _request(
        self,
        method: str,
        path: str,
        error_prefix: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                token = await self._get_access_token(client)
                request_headers = {
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                }
                request_headers.update(headers or {})
                response = await client.request(method, path, json=json, headers=request_headers)
        except httpx.TimeoutException:
            raise ProviderTimeoutError(f"{error_prefix}: PayPal did not respond within {self.config.timeout}s")
        except httpx.HTTPError as e:
            raise ProviderRequestError(f"{error_prefix}: {str(e)}")

        if not response.is_success:
            raise ProviderRequestError(
                f"{error_prefix}: {response.status_code} - {response.text}",
                upstream_status=response.status_code,
            )
        return response

    async def create_subscription(
        self,
        plan_ref: str,
        tenant_id: str,
        tenant_email: str,
        return_url: str,
        cancel_url: str,
    ) -> CreatedSubscription:
        logger.info(f"Creating PayPal subscription: plan={plan_ref} tenant={tenant_id}")
        body = {
            "plan_id": plan_ref,
            "subscriber": {"email_address": tenant_email},
            "application_context": {
                "brand_name": self.config.brand_name,
                "locale": "en-US",
                "shipping_preference": "NO_SHIPPING",
                "user_action": "SUBSCRIBE_NOW",
                "payment_method": {
                    "payer_selected": "PAYPAL",
                    "payee_preferred": "IMMEDIATE_PAYMENT_REQUIRED",
                },
                "return_url": return_url,
                "cancel_url": cancel_url,
            },
            "custom_id": tenant_id,
        }
        response = await self._request(
            "POST",
            "/v1/billing/subscriptions",
            "PayPal API error",
            json=body,
            headers={"Prefer": "return=representation"},
        )
        subscription = response.json()
        approval_url = next(
            (link.get("href") for link in subscription.get("links", []) if link.get("rel") == "approve"),
            None,
        )
        if not approval_url:
            raise ProviderResponseError("No approval link found in PayPal response")
        if not subscription.get("id"):
            raise ProviderResponseError("No subscription id found in PayPal response")

        logger.info(f"PayPal subscription created: {subscription['id']}")
        return CreatedSubscription(
            provider_subscription_id=subscription["id"],
            approval_url=approval_url,
            raw_status=subscription.get("status", ""),
        )

    async def fetch_subscription(self, provider_subscription_id: str) -> ProviderSubscriptionState:
        response = await self._request(
            "GET",
            f"/v1/billing/subscriptions/{provider_subscription_id}",
            "Failed to get subscription details",
        )
        details = response.json()
        if not details.get("status"):
            raise ProviderResponseError("PayPal subscription response has no status")

        subscriber = details.get("subscriber") or {}
        billing_info = details.get("billing_info") or {}
        return ProviderSubscriptionState(
            raw_status=details["status"],
            period_start=parse_paypal_time(details.get("start_time")),
            period_end=parse_paypal_time(billing_info.get("next_billing_time")),
            plan_ref=details.get("plan_id"),
            metadata={
                "payer_id": subscriber.get("payer_id"),
                "custom_id": details.get("custom_id"),
            },
        )

    async def _lifecycle(self, provider_subscription_id: str, action: str, reason: str, label: str):
        await self._request(
            "POST",
            f"/v1/billing/subscriptions/{provider_subscription_id}/{action}",
            f"PayPal {label} failed",
            json={"reason": reason},
        )
        logger.info(f"PayPal subscription {provider_subscription_id}: {action} ok")

    async def cancel_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        await self._lifecycle(provider_subscription_id, "cancel", reason, "cancellation")
        return ActionResult(success=True, message="Subscription cancelled successfully")

    async def suspend_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        await self._lifecycle(provider_subscription_id, "suspend", reason, "suspension")
        return ActionResult(success=True, message="Subscription suspended successfully")

    async def activate_subscription(self, provider_subscription_id: str, reason: str) -> ActionResult:
        await self._lifecycle(provider_subscription_id, "activate", reason, "activation")
        return ActionResult(success=True, message="Subscription activated successfully")

    async def create_portal_session(self, ref: str, return_url: str) -> PortalSession:
        # PayPal has no hosted customer portal; send the payer to their autopay page
        return PortalSession(url=self.config.management_url, degraded=True)

    def normalize_status(self, raw_status: Optional[str]) -> SubscriptionStatus:
        return normalize_with(PAYPAL_STATUSES, raw_status)

    async def diagnostics(self) -> Dict[str, Any]:
        report: Dict[str, Any] = {
            "provider": self.name.value,
            "environment": self.config.environment,
            "hasClientId": bool(self.config.client_id),
            "hasClientSecret": bool(self.config.client_secret),
            "clientIdPrefix": mask(self.config.client_id),
        }
        if not (self.config.client_id and self.config.client_secret):
            report["initialized"] = False
            report["initError"] = "Missing PayPal credentials"
            return report

        try:
            response = await self._request(
                "GET",
                "/v1/billing/plans?page_size=5&page=1&total_required=true",
                "PayPal plans lookup failed",
            )
            plans = response.json().get("plans") or []
            report["initialized"] = True
            report["apiWorking"] = True
            report["planIds"] = [
                {"id": plan.get("id"), "name": plan.get("name"), "status": plan.get("status")}
                for plan in plans
            ]
        except ProviderAuthError as e:
            report["initialized"] = False
            report["initError"] = e.detail
        except ProviderRequestError as e:
            report["initialized"] = True
            report["apiWorking"] = False
            report["apiError"] = e.detail
        return report
