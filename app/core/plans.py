from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from app.core.config import Settings, settings
from app.schemas.subscription import ProviderName


@dataclass(frozen=True)
class PlanDefinition:
    plan_id: str
    name: str
    price: int  # USD per month
    review_requests: Union[int, str]
    features: tuple
    provider_refs: Dict[ProviderName, str] = field(default_factory=dict)
    popular: bool = False

    def as_dict(self) -> dict:
        return {
            "id": self.plan_id,
            "name": self.name,
            "price": self.price,
            "reviewRequests": self.review_requests,
            "features": list(self.features),
            "popular": self.popular,
            "stripePriceId": self.provider_refs.get(ProviderName.STRIPE),
            "paypalPlanId": self.provider_refs.get(ProviderName.PAYPAL),
        }


class PlanCatalog:
    """Static plan table; provider references come from configuration"""

    def __init__(self, plans: List[PlanDefinition]):
        self._plans = {plan.plan_id: plan for plan in plans}

    def __iter__(self):
        return iter(self._plans.values())

    def get(self, plan_id: Optional[str]) -> Optional[PlanDefinition]:
        if not plan_id:
            return None
        return self._plans.get(plan_id.lower())

    def display_name(self, plan_ref: str) -> str:
        """Human label for a plan id or provider ref, falling back to the raw value"""
        plan = self.get(plan_ref) or self.find_by_provider_ref(plan_ref)
        return plan.name if plan else plan_ref

    def provider_ref(self, plan_ref: str, provider: ProviderName) -> str:
        """Translate a catalog id to the provider's price/plan id; pass raw refs through"""
        plan = self.get(plan_ref)
        if plan and plan.provider_refs.get(provider):
            return plan.provider_refs[provider]
        return plan_ref

    def find_by_provider_ref(self, ref: Optional[str]) -> Optional[PlanDefinition]:
        if not ref:
            return None
        for plan in self._plans.values():
            if ref in plan.provider_refs.values():
                return plan
        return None

    def plan_id_for(self, ref: Optional[str]) -> Optional[str]:
        plan = self.get(ref) or self.find_by_provider_ref(ref)
        return plan.plan_id if plan else ref


def build_catalog(config: Settings) -> PlanCatalog:
    return PlanCatalog([
        PlanDefinition(
            plan_id="starter",
            name="Starter",
            price=29,
            review_requests=100,
            features=(
                "Up to 100 review requests per month",
                "Basic sentiment analysis",
                "Email notifications",
                "Basic analytics dashboard",
            ),
            provider_refs={
                ProviderName.STRIPE: config.stripe_price_starter,
                ProviderName.PAYPAL: config.paypal_plan_starter,
            },
        ),
        PlanDefinition(
            plan_id="professional",
            name="Professional",
            price=59,
            review_requests=500,
            features=(
                "Up to 500 review requests per month",
                "Advanced AI sentiment analysis",
                "SMS + Email notifications",
                "Advanced analytics & insights",
                "Custom widget branding",
                "Priority support",
            ),
            provider_refs={
                ProviderName.STRIPE: config.stripe_price_professional,
                ProviderName.PAYPAL: config.paypal_plan_professional,
            },
            popular=True,
        ),
        PlanDefinition(
            plan_id="enterprise",
            name="Enterprise",
            price=99,
            review_requests="Unlimited",
            features=(
                "Unlimited review requests",
                "Advanced AI sentiment analysis",
                "SMS + Email notifications",
                "Advanced analytics & insights",
                "Custom widget branding",
                "White-label solution",
                "Dedicated account manager",
                "API access",
                "Custom integrations",
            ),
            provider_refs={
                ProviderName.STRIPE: config.stripe_price_enterprise,
                ProviderName.PAYPAL: config.paypal_plan_enterprise,
            },
        ),
    ])


plan_catalog = build_catalog(settings)
