from supabase import acreate_client, AsyncClient
from supabase.lib.client_options import AsyncClientOptions
from supabase_auth import AsyncSupportedStorage
from tables_sync.config.settings import Settings, settings
from typing import Optional


class SupabaseClient:
    _client: AsyncClient = None

    @classmethod
    async def get_client(
        cls,
        storage: Optional[AsyncSupportedStorage] = None,
        config: Settings = settings
    ) -> AsyncClient:
        """Async client shared by auth, PostgREST and realtime. Session is persisted through `storage` when given."""
        if cls._client is None:
            options = AsyncClientOptions(auto_refresh_token=True, persist_session=True)
            if storage is not None:
                options.storage = storage
            cls._client = await acreate_client(config.supabase_url, config.supabase_key, options=options)
        return cls._client

    @classmethod
    def reset_client(cls):
        cls._client = None
