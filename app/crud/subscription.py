import logging
from typing import Dict, Optional, Protocol

from app.core.exceptions import handle_storage_errors
from app.schemas.subscription import ProviderName, Subscription, SubscriptionStatusUpdate
from app.services.supabase_service import SupabaseService

logger = logging.getLogger(__name__)

TABLE = "subscriptions"
CONFLICT_KEY = "user_id"


class SubscriptionStore(Protocol):
    """
    Read/write contract for subscription records.

    `get` returns None for a tenant that never subscribed; storage failures
    raise StorageError. `upsert` replaces the tenant's record wholesale.
    """

    async def get(self, tenant_id: str) -> Optional[Subscription]:
        ...

    async def upsert(self, subscription: Subscription) -> Subscription:
        ...

    async def update_status(
        self, tenant_id: str, provider: ProviderName, fields: SubscriptionStatusUpdate
    ) -> Optional[Subscription]:
        ...

    async def delete_for_tenant(self, tenant_id: str) -> int:
        ...


class SupabaseSubscriptionStore:
    """Subscription records in the hosted `subscriptions` table"""

    def __init__(self, service: SupabaseService):
        self.service = service

    @handle_storage_errors
    async def get(self, tenant_id: str) -> Optional[Subscription]:
        response = await self.service.run(
            lambda client: client.table(TABLE).select("*").eq(CONFLICT_KEY, tenant_id).limit(1).execute()
        )
        if response.data:
            return Subscription.from_row(response.data[0])
        return None

    @handle_storage_errors
    async def upsert(self, subscription: Subscription) -> Subscription:
        row = subscription.to_row()
        response = await self.service.run(
            lambda client: client.table(TABLE).upsert(row, on_conflict=CONFLICT_KEY).execute()
        )
        if response.data:
            return Subscription.from_row(response.data[0])
        return subscription

    @handle_storage_errors
    async def update_status(
        self, tenant_id: str, provider: ProviderName, fields: SubscriptionStatusUpdate
    ) -> Optional[Subscription]:
        values = fields.model_dump(mode="json", exclude_none=True)
        response = await self.service.run(
            lambda client: client.table(TABLE)
            .update(values)
            .eq(CONFLICT_KEY, tenant_id)
            .eq("provider", provider.value)
            .execute()
        )
        if response.data:
            return Subscription.from_row(response.data[0])
        return None

    @handle_storage_errors
    async def delete_for_tenant(self, tenant_id: str) -> int:
        response = await self.service.run(
            lambda client: client.table(TABLE).delete().eq(CONFLICT_KEY, tenant_id).execute()
        )
        return len(response.data or [])


class InMemorySubscriptionStore:
    """Process-local store used when Supabase is not configured, and in tests"""

    def __init__(self):
        self.rows: Dict[str, Subscription] = {}

    async def get(self, tenant_id: str) -> Optional[Subscription]:
        return self.rows.get(tenant_id)

    async def upsert(self, subscription: Subscription) -> Subscription:
        self.rows[subscription.tenant_id] = subscription.model_copy(deep=True)
        return subscription

    async def update_status(
        self, tenant_id: str, provider: ProviderName, fields: SubscriptionStatusUpdate
    ) -> Optional[Subscription]:
        current = self.rows.get(tenant_id)
        if current is None or current.provider != provider:
            return None
        updated = current.model_copy(update=fields.model_dump(exclude_none=True))
        self.rows[tenant_id] = updated
        return updated

    async def delete_for_tenant(self, tenant_id: str) -> int:
        return 1 if self.rows.pop(tenant_id, None) else 0


def build_subscription_store(service: SupabaseService) -> SubscriptionStore:
    if service.configured:
        return SupabaseSubscriptionStore(service)
    logger.warning("⚠️ Supabase not configured; subscriptions are kept in memory only")
    return InMemorySubscriptionStore()
