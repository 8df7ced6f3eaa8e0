from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from pydantic.alias_generators import to_camel
from typing import Optional, List, ClassVar, Tuple, Dict, Any

from app.core.exceptions import ValidationError
from app.schemas.subscription import ProviderName, Subscription


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequiredFieldsModel(CamelModel):
    """Request body whose fields are checked by the handler, not by the parser"""
    required_fields: ClassVar[Tuple[str, ...]] = ()

    def missing_fields(self) -> List[str]:
        missing = []
        for name in self.required_fields:
            value = getattr(self, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(to_camel(name))
        return missing

    def require_fields(self):
        missing = self.missing_fields()
        if missing:
            raise ValidationError(f"Missing required parameters: {', '.join(missing)}")


class BillingRequest(RequiredFieldsModel):
    provider: Optional[ProviderName] = None


# Request schemas
class CreateSubscriptionRequest(BillingRequest):
    required_fields: ClassVar[Tuple[str, ...]] = (
        "plan_ref", "tenant_id", "tenant_email", "return_url", "cancel_url"
    )

    plan_ref: Optional[str] = Field(None, validation_alias=AliasChoices("planRef", "planId", "priceId", "plan_ref"))
    tenant_id: Optional[str] = Field(None, validation_alias=AliasChoices("tenantId", "userId", "tenant_id"))
    tenant_email: Optional[str] = Field(None, validation_alias=AliasChoices("tenantEmail", "userEmail", "tenant_email"))
    return_url: Optional[str] = Field(None, validation_alias=AliasChoices("returnUrl", "successUrl", "return_url"))
    cancel_url: Optional[str] = Field(None, validation_alias=AliasChoices("cancelUrl", "cancel_url"))


class ManageSubscriptionRequest(BillingRequest):
    required_fields: ClassVar[Tuple[str, ...]] = ("subscription_ref", "return_url")

    subscription_ref: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("subscriptionRef", "subscriptionId", "customerId", "subscription_ref"),
    )
    return_url: Optional[str] = Field(None, validation_alias=AliasChoices("returnUrl", "return_url"))
    action: Optional[str] = None
    tenant_id: Optional[str] = Field(None, validation_alias=AliasChoices("tenantId", "userId", "tenant_id"))


class ApprovalCallbackRequest(BillingRequest):
    required_fields: ClassVar[Tuple[str, ...]] = ("provider_subscription_id", "tenant_id", "plan_ref")

    provider_subscription_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("providerSubscriptionId", "subscriptionId", "provider_subscription_id"),
    )
    tenant_id: Optional[str] = Field(None, validation_alias=AliasChoices("tenantId", "userId", "tenant_id"))
    plan_ref: Optional[str] = Field(None, validation_alias=AliasChoices("planRef", "planId", "plan_ref"))


class DeleteAccountRequest(RequiredFieldsModel):
    required_fields: ClassVar[Tuple[str, ...]] = ("tenant_id",)

    tenant_id: Optional[str] = Field(None, validation_alias=AliasChoices("tenantId", "userId", "tenant_id"))


# Response schemas
class CreateSubscriptionResponse(CamelModel):
    approval_url: str
    provider_subscription_id: str
    status: Optional[str] = None


class ManageSubscriptionResponse(CamelModel):
    url: Optional[str] = None
    degraded: Optional[bool] = None
    success: Optional[bool] = None
    message: Optional[str] = None
    redirect_url: Optional[str] = None


class SubscriptionSummary(BaseModel):
    id: str
    status: str
    plan_name: str


class ApprovalCallbackResponse(BaseModel):
    success: bool
    subscription: SubscriptionSummary


class SubscriptionRecordResponse(BaseModel):
    success: bool
    subscription: Optional[Subscription] = None


class PlanListResponse(BaseModel):
    success: bool
    plans: List[Dict[str, Any]]


class DeleteAccountResponse(BaseModel):
    success: bool


class ErrorResponse(BaseModel):
    error: str
    code: str
