from supabase import AsyncClient
from tables_sync.core.errors import TablesError
from tables_sync.core.session import SessionGuard, SessionState
from tables_sync.modules.nudges.schemas import NudgeResponse
from typing import List, Optional
from uuid import uuid4


class NudgeService:
    def __init__(self, supabase: AsyncClient, guard: SessionGuard, session: SessionState):
        self.supabase = supabase
        self.guard = guard
        self.session = session

    async def create_nudge(self, table_id: str, message: Optional[str] = None) -> NudgeResponse:
        self.session.require_user_id()
        insert_data = {
            "id": str(uuid4()),
            "table_id": table_id,
            "author_name": self.session.author_name,
            "message": message
        }

        async def operation():
            result = await self.supabase.table("nudges").insert(insert_data).execute()
            if not result.data:
                raise TablesError("Failed to create nudge")
            return NudgeResponse(**result.data[0])

        return await self.guard.run(operation)

    async def fetch_nudges(self, table_id: str) -> List[NudgeResponse]:
        async def operation():
            result = await self.supabase.table("nudges")\
                .select("*")\
                .eq("table_id", table_id)\
                .order("created_at", desc=True)\
                .execute()
            return [NudgeResponse(**nudge) for nudge in result.data or []]

        return await self.guard.run(operation)
