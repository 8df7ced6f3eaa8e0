import logging

from app.core.exceptions import StorageError, ValidationError
from app.crud.subscription import SubscriptionStore
from app.services.billing_service import billing_service
from app.services.supabase_service import SupabaseService, supabase_service

logger = logging.getLogger(__name__)


class AccountService:
    """Privileged account removal; needs the service role key"""

    def __init__(self, supabase: SupabaseService, store: SubscriptionStore):
        self.supabase = supabase
        self.store = store

    async def delete_account(self, tenant_id: str):
        if not tenant_id or not tenant_id.strip():
            raise ValidationError("User ID is required")

        # Reviews, customers and widgets cascade from businesses
        result = await self.supabase.delete_rows("businesses", "user_id", tenant_id)
        if not result["success"]:
            logger.error(f"Error deleting businesses for {tenant_id}: {result['error']}")

        try:
            await self.store.delete_for_tenant(tenant_id)
        except StorageError as e:
            logger.error(f"Error deleting subscriptions for {tenant_id}: {e.detail}")

        result = await self.supabase.delete_user(tenant_id)
        if not result["success"]:
            raise StorageError(f"Account deletion failed: {result['error']}")
        logger.info(f"🗑️ Account deleted: {tenant_id}")


account_service = AccountService(supabase_service, billing_service.store)


def get_account_service() -> AccountService:
    return account_service
