import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from app.core.config import Settings, settings
from app.core.exceptions import SubscriptionNotActiveError, ValidationError
from app.core.plans import PlanCatalog, plan_catalog
from app.crud.subscription import SubscriptionStore, build_subscription_store
from app.schemas.billing import (
    ApprovalCallbackRequest,
    BillingRequest,
    CreateSubscriptionRequest,
    ManageSubscriptionRequest,
)
from app.schemas.subscription import (
    ManageAction,
    ProviderName,
    Subscription,
    SubscriptionStatus,
    SubscriptionStatusUpdate,
    utcnow,
)
from app.services.paypal_service import PayPalConfig, PayPalService
from app.services.provider_client import CreatedSubscription, ProviderClient
from app.services.simulated_provider import SimulatedProvider
from app.services.stripe_service import StripeConfig, StripeService
from app.services.supabase_service import supabase_service

logger = logging.getLogger(__name__)

PORTAL_ACTIONS = {None, "", "manage", "portal"}

ACTION_REASONS = {
    ManageAction.CANCEL: "User requested cancellation",
    ManageAction.SUSPEND: "User requested suspension",
    ManageAction.ACTIVATE: "User requested reactivation",
}

ACTION_STATUSES = {
    ManageAction.CANCEL: SubscriptionStatus.CANCELLED,
    ManageAction.SUSPEND: SubscriptionStatus.SUSPENDED,
    ManageAction.ACTIVATE: SubscriptionStatus.ACTIVE,
}


class ProviderFactory:
    """Builds provider clients from configuration; one instance per provider"""

    def __init__(self, config: Settings):
        self.config = config
        self._clients: Dict[ProviderName, ProviderClient] = {}

    def __call__(self, name: ProviderName) -> ProviderClient:
        if name not in self._clients:
            self._clients[name] = self._build(name)
        return self._clients[name]

    def _build(self, name: ProviderName) -> ProviderClient:
        if self.config.billing_simulated:
            logger.info(f"Using simulated provider for {name.value}")
            return SimulatedProvider(name=name)
        if name == ProviderName.STRIPE:
            return StripeService(StripeConfig.from_settings(self.config))
        return PayPalService(PayPalConfig.from_settings(self.config))


class BillingService:
    """Subscription creation, management and approval reconciliation"""

    def __init__(
        self,
        store: SubscriptionStore,
        providers: Callable[[ProviderName], ProviderClient],
        catalog: PlanCatalog,
        default_provider: ProviderName = ProviderName.PAYPAL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.providers = providers
        self.catalog = catalog
        self.default_provider = default_provider
        self.clock = clock

    def provider_for(self, request: BillingRequest) -> ProviderClient:
        return self.providers(request.provider or self.default_provider)

    async def create_subscription(self, request: CreateSubscriptionRequest) -> CreatedSubscription:
        request.require_fields()
        provider = self.provider_for(request)
        provider_plan = self.catalog.provider_ref(request.plan_ref, provider.name)
        logger.info(
            f"Creating {provider.name.value} subscription for tenant {request.tenant_id}: "
            f"plan={request.plan_ref} ({provider_plan})"
        )
        return await provider.create_subscription(
            plan_ref=provider_plan,
            tenant_id=request.tenant_id,
            tenant_email=request.tenant_email,
            return_url=request.return_url,
            cancel_url=request.cancel_url,
        )

    async def manage_subscription(self, request: ManageSubscriptionRequest) -> Dict[str, Any]:
        """Open the provider portal, or cancel / suspend / activate the subscription"""
        request.require_fields()
        raw_action = (request.action or "").strip().lower()
        if raw_action in PORTAL_ACTIONS:
            action = ManageAction.PORTAL
        else:
            try:
                action = ManageAction(raw_action)
            except ValueError:
                raise ValidationError(f"Unsupported action: {request.action}")

        provider = self.provider_for(request)

        if action == ManageAction.PORTAL:
            session = await provider.create_portal_session(request.subscription_ref, request.return_url)
            if session.degraded:
                logger.info(f"{provider.name.value} has no hosted portal; returning account page")
            return {"url": session.url, "degraded": session.degraded}

        operation = {
            ManageAction.CANCEL: provider.cancel_subscription,
            ManageAction.SUSPEND: provider.suspend_subscription,
            ManageAction.ACTIVATE: provider.activate_subscription,
        }[action]
        try:
            result = await operation(request.subscription_ref, ACTION_REASONS[action])
        except Exception as e:
            # Not retried; an already-cancelled subscription lands here too
            logger.warning(f"{provider.name.value} {action.value} failed for {request.subscription_ref}: {e}")
            raise

        if request.tenant_id:
            now = self.clock()
            updated = await self.store.update_status(
                request.tenant_id,
                provider.name,
                SubscriptionStatusUpdate(
                    status=ACTION_STATUSES[action],
                    cancelled_at=now if action == ManageAction.CANCEL else None,
                    updated_at=now,
                ),
            )
            if updated is None:
                logger.warning(
                    f"No {provider.name.value} subscription row for tenant {request.tenant_id}; "
                    f"local status not updated"
                )

        return {
            "success": result.success,
            "message": result.message,
            "redirectUrl": request.return_url,
        }

    async def reconcile_approval(self, request: ApprovalCallbackRequest) -> Subscription:
        """
        Pull authoritative state after the payer returns from the provider and
        overwrite the tenant's subscription record with it.

        Safe to repeat: a second call re-fetches and re-writes the same data.
        """
        request.require_fields()
        provider = self.provider_for(request)
        logger.info(
            f"Processing {provider.name.value} approval: subscription={request.provider_subscription_id} "
            f"tenant={request.tenant_id} plan={request.plan_ref}"
        )

        state = await provider.fetch_subscription(request.provider_subscription_id)
        status = provider.normalize_status(state.raw_status)
        if status != SubscriptionStatus.ACTIVE:
            raise SubscriptionNotActiveError(state.raw_status)

        now = self.clock()
        subscription = Subscription(
            tenant_id=request.tenant_id,
            provider=provider.name,
            provider_subscription_id=state.provider_subscription_id or request.provider_subscription_id,
            plan_name=self.catalog.display_name(request.plan_ref),
            status=status,
            raw_status=state.raw_status,
            current_period_start=state.period_start,
            current_period_end=state.period_end,
            created_at=now,
            updated_at=now,
            metadata={
                **state.metadata,
                "plan_id": self.catalog.plan_id_for(request.plan_ref),
                "provider_plan_ref": state.plan_ref,
            },
        )
        saved = await self.store.upsert(subscription)
        logger.info(f"✅ Subscription saved for tenant {request.tenant_id}: {saved.plan_name} ({saved.status.value})")
        return saved

    async def get_subscription(self, tenant_id: str) -> Optional[Subscription]:
        if not tenant_id or not tenant_id.strip():
            raise ValidationError("Missing required parameters: tenantId")
        return await self.store.get(tenant_id)

    async def diagnostics(self, name: ProviderName) -> Dict[str, Any]:
        provider = self.providers(name)
        report = await provider.diagnostics()
        refs = {plan.plan_id: plan.provider_refs.get(name) for plan in self.catalog}
        report["timestamp"] = self.clock().isoformat()
        report["planConfiguration"] = {
            "planIds": refs,
            "complete": all(refs.values()),
        }
        recommendations = []
        if not report.get("initialized"):
            recommendations.append(f"Set the {name.value} API credentials in the environment")
        elif report.get("apiWorking") is False:
            recommendations.append(f"Check {name.value} API credentials and permissions")
        if not report["planConfiguration"]["complete"]:
            recommendations.append(f"Configure {name.value} plan ids for every catalog plan")
        report["recommendations"] = recommendations
        return report


def build_billing_service(config: Settings) -> BillingService:
    try:
        default_provider = ProviderName(config.default_provider.lower())
    except ValueError:
        logger.warning(f"Unknown DEFAULT_PROVIDER {config.default_provider!r}; using paypal")
        default_provider = ProviderName.PAYPAL
    return BillingService(
        store=build_subscription_store(supabase_service),
        providers=ProviderFactory(config),
        catalog=plan_catalog,
        default_provider=default_provider,
    )


# Create a singleton instance
billing_service = build_billing_service(settings)


def get_billing_service() -> BillingService:
    return billing_service
