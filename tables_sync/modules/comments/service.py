from supabase import AsyncClient
from tables_sync.core.errors import TablesError
from tables_sync.core.session import SessionGuard, SessionState
from tables_sync.modules.comments.schemas import CommentCreate, CommentResponse
from typing import List
from uuid import uuid4


class CommentService:
    def __init__(self, supabase: AsyncClient, guard: SessionGuard, session: SessionState):
        self.supabase = supabase
        self.guard = guard
        self.session = session

    async def fetch_comments(self, card_id: str) -> List[CommentResponse]:
        """List a card's comments, oldest first"""
        async def operation():
            result = await self.supabase.table("comments")\
                .select("*")\
                .eq("card_id", card_id)\
                .order("created_at")\
                .execute()
            return [CommentResponse(**comment) for comment in result.data or []]

        return await self.guard.run(operation)

    async def create_comment(self, card_id: str, comment_data: CommentCreate) -> CommentResponse:
        self.session.require_user_id()
        insert_data = {
            "id": str(uuid4()),
            "card_id": card_id,
            "body": comment_data.body,
            "author_name": self.session.author_name
        }

        async def operation():
            result = await self.supabase.table("comments").insert(insert_data).execute()
            if not result.data:
                raise TablesError("Failed to add comment")
            return CommentResponse(**result.data[0])

        return await self.guard.run(operation)

    async def delete_comment(self, comment_id: str) -> None:
        async def operation():
            await self.supabase.table("comments")\
                .delete()\
                .eq("id", comment_id)\
                .execute()

        await self.guard.run(operation)
