from fastapi import APIRouter, Depends, HTTPException
import logging

from app.core.exceptions import ServiceError
from app.schemas.billing import DeleteAccountRequest, DeleteAccountResponse
from app.services.account_service import AccountService, get_account_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/delete-account",
    response_model=DeleteAccountResponse,
    summary="Delete tenant account",
    description="Remove the tenant's businesses, subscription and identity record",
)
async def delete_account(
    request: DeleteAccountRequest,
    service: AccountService = Depends(get_account_service),
):
    try:
        request.require_fields()
        await service.delete_account(request.tenant_id)
        return DeleteAccountResponse(success=True)
    except HTTPException as e:
        logger.error(f"Account deletion error: {e.detail}")
        raise
    except Exception as e:
        logger.exception("Account deletion error")
        raise ServiceError(str(e))
