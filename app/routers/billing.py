from fastapi import APIRouter, Depends, HTTPException
import logging

from app.core.exceptions import ServiceError
from app.schemas.billing import (
    ApprovalCallbackRequest,
    ApprovalCallbackResponse,
    CreateSubscriptionRequest,
    CreateSubscriptionResponse,
    ManageSubscriptionRequest,
    ManageSubscriptionResponse,
    PlanListResponse,
    SubscriptionRecordResponse,
    SubscriptionSummary,
)
from app.schemas.subscription import ProviderName
from app.services.billing_service import BillingService, get_billing_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/create-subscription",
    response_model=CreateSubscriptionResponse,
    summary="Start a subscription",
    description="Create a subscription with the payment provider and return its hosted approval URL",
)
async def create_subscription(
    request: CreateSubscriptionRequest,
    service: BillingService = Depends(get_billing_service),
):
    try:
        created = await service.create_subscription(request)
        return CreateSubscriptionResponse(
            approval_url=created.approval_url,
            provider_subscription_id=created.provider_subscription_id,
            status=created.raw_status,
        )
    except HTTPException as e:
        logger.error(f"create-subscription failed: {e.detail}")
        raise
    except Exception as e:
        logger.exception("create-subscription failed")
        raise ServiceError(str(e))


@router.post(
    "/manage-subscription",
    response_model=ManageSubscriptionResponse,
    response_model_exclude_none=True,
    summary="Manage a subscription",
    description="Open the provider portal, or cancel / suspend / activate a subscription",
)
async def manage_subscription(
    request: ManageSubscriptionRequest,
    service: BillingService = Depends(get_billing_service),
):
    try:
        result = await service.manage_subscription(request)
        return ManageSubscriptionResponse(**result)
    except HTTPException as e:
        logger.error(f"manage-subscription failed: {e.detail}")
        raise
    except Exception as e:
        logger.exception("manage-subscription failed")
        raise ServiceError(str(e))


@router.post(
    "/approval-callback",
    response_model=ApprovalCallbackResponse,
    summary="Reconcile an approved subscription",
    description="Fetch authoritative state from the provider after approval and store it for the tenant",
)
async def approval_callback(
    request: ApprovalCallbackRequest,
    service: BillingService = Depends(get_billing_service),
):
    try:
        subscription = await service.reconcile_approval(request)
        return ApprovalCallbackResponse(
            success=True,
            subscription=SubscriptionSummary(
                id=subscription.provider_subscription_id,
                status=subscription.status.value,
                plan_name=subscription.plan_name,
            ),
        )
    except HTTPException as e:
        logger.error(f"approval-callback failed: {e.detail}")
        raise
    except Exception as e:
        logger.exception("approval-callback failed")
        raise ServiceError(str(e))


@router.get("/subscription/{tenant_id}", response_model=SubscriptionRecordResponse)
async def get_subscription(
    tenant_id: str,
    service: BillingService = Depends(get_billing_service),
):
    """Current subscription record; `null` for a tenant that never subscribed"""
    try:
        subscription = await service.get_subscription(tenant_id)
        return SubscriptionRecordResponse(success=True, subscription=subscription)
    except HTTPException as e:
        logger.error(f"subscription read failed: {e.detail}")
        raise
    except Exception as e:
        logger.exception("subscription read failed")
        raise ServiceError(str(e))


@router.get("/plans", response_model=PlanListResponse)
async def get_plans(service: BillingService = Depends(get_billing_service)):
    return PlanListResponse(success=True, plans=[plan.as_dict() for plan in service.catalog])


@router.get("/diagnostics/{provider}")
async def provider_diagnostics(
    provider: ProviderName,
    service: BillingService = Depends(get_billing_service),
):
    """Configuration and connectivity report; never exposes secrets"""
    try:
        return await service.diagnostics(provider)
    except HTTPException as e:
        logger.error(f"{provider.value} diagnostics failed: {e.detail}")
        raise
    except Exception as e:
        logger.exception(f"{provider.value} diagnostics failed")
        raise ServiceError(str(e))
