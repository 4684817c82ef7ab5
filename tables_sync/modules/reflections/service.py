from supabase import AsyncClient
from tables_sync.core.cache import ClientCache
from tables_sync.core.errors import TablesError
from tables_sync.core.schemas import format_timestamp, utc_now
from tables_sync.core.session import SessionGuard, SessionState
from tables_sync.modules.reflections.schemas import ReflectionCreate, ReflectionResponse
from typing import List
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class ReflectionService:
    def __init__(self, supabase: AsyncClient, guard: SessionGuard, session: SessionState, cache: ClientCache):
        self.supabase = supabase
        self.guard = guard
        self.session = session
        self.cache = cache

    async def fetch_reflections(self) -> List[ReflectionResponse]:
        """Load the user's own reflections, newest first. Failures leave the cache untouched."""
        if not self.session.is_authenticated:
            return self.cache.reflections
        user_id = self.session.user_id

        async def operation():
            result = await self.supabase.table("reflections")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            return [ReflectionResponse(**reflection) for reflection in result.data or []]

        try:
            self.cache.reflections = await self.guard.run(operation)
            logger.debug(f"Fetched {len(self.cache.reflections)} reflections")
        except Exception as e:
            logger.warning(f"Failed to fetch reflections: {e}")
        return self.cache.reflections

    async def create_reflection(self, reflection_data: ReflectionCreate) -> ReflectionResponse:
        user_id = self.session.require_user_id()
        insert_data = {
            "id": str(uuid4()),
            "user_id": user_id,
            "body": reflection_data.body,
            "prompt": reflection_data.prompt,
            "reflection_type": reflection_data.reflection_type
        }

        async def operation():
            result = await self.supabase.table("reflections").insert(insert_data).execute()
            if not result.data:
                raise TablesError("Failed to save reflection")
            return ReflectionResponse(**result.data[0])

        reflection = await self.guard.run(operation)
        self.cache.reflections.insert(0, reflection)
        logger.info(f"Created reflection: {reflection.id}")
        return reflection

    async def update_reflection(self, reflection_id: str, body: str) -> None:
        """Edit a reflection's body"""
        now = utc_now()

        async def operation():
            await self.supabase.table("reflections")\
                .update({"body": body, "updated_at": format_timestamp(now)})\
                .eq("id", reflection_id)\
                .execute()

        await self.guard.run(operation)
        self.cache.reflections = [
            r.model_copy(update={"body": body, "updated_at": now}) if r.id == reflection_id else r
            for r in self.cache.reflections
        ]
        logger.info(f"Updated reflection: {reflection_id}")

    async def delete_reflection(self, reflection_id: str) -> None:
        async def operation():
            await self.supabase.table("reflections")\
                .delete()\
                .eq("id", reflection_id)\
                .execute()

        await self.guard.run(operation)
        self.cache.remove_reflection(reflection_id)
        logger.info(f"Deleted reflection: {reflection_id}")
