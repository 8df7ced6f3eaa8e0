from supabase import create_client, Client
from app.core.config import settings
from typing import Any, Callable, Dict, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)


class SupabaseService:
    def __init__(self, url: Optional[str] = None, key: Optional[str] = None, timeout: Optional[float] = None):
        self.supabase: Optional[Client] = None
        self.timeout = timeout or settings.provider_timeout
        url = url or settings.supabase_url
        key = key or settings.supabase_service_role_key
        if url and key:
            try:
                self.supabase = create_client(supabase_url=url, supabase_key=key)
                logger.info("✅ Supabase client initialized successfully")
            except Exception as e:
                logger.error(f"❌ Failed to initialize Supabase client: {e}")
                self.supabase = None
        else:
            logger.warning("❌ Supabase URL or service role key not provided")

    @property
    def configured(self) -> bool:
        return self.supabase is not None

    def _check_client(self):
        if not self.supabase:
            raise RuntimeError(
                "Supabase client not initialized. Check your SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY."
            )

    async def run(self, query: Callable[[Client], Any]) -> Any:
        """Execute a blocking supabase-py call off the event loop, bounded by the timeout"""
        self._check_client()
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(query, self.supabase),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise TimeoutError(f"Supabase did not respond within {self.timeout}s")

    async def delete_rows(self, table: str, column: str, value: str) -> Dict[str, Any]:
        """Delete rows matching column == value"""
        try:
            response = await self.run(lambda client: client.table(table).delete().eq(column, value).execute())
            return {
                "success": True,
                "data": response.data
            }
        except Exception as e:
            return {
                "success": False,
                "error": str(e)
            }

    async def delete_user(self, user_id: str) -> Dict[str, Any]:
        """Delete an auth user with the admin API (service role key required)"""
        try:
            await self.run(lambda client: client.auth.admin.delete_user(user_id))
            return {
                "success": True
            }
        except Exception as e:
            return {
                "success": False,
                "error": str(e)
            }


# Create a singleton instance
supabase_service = SupabaseService()
