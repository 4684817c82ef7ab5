from supabase import AsyncClient
from tables_sync.core.errors import TablesError, NotAuthenticated
from tables_sync.core.session import SessionGuard, SessionState
from tables_sync.modules.cards.schemas import (
    CardCreate, CardUpdate, CardResponse, CardStatus, ExcerptShare, garden_card_title
)
from tables_sync.modules.reflections.schemas import ReflectionResponse
from typing import Dict, List, Optional
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class CardService:
    def __init__(self, supabase: AsyncClient, guard: SessionGuard, session: SessionState, table_service):
        self.supabase = supabase
        self.guard = guard
        self.session = session
        self.table_service = table_service

    async def fetch_cards(self, table_id: str) -> List[CardResponse]:
        """List a table's cards, newest first"""
        async def operation():
            result = await self.supabase.table("cards")\
                .select("*")\
                .eq("table_id", table_id)\
                .order("created_at", desc=True)\
                .execute()
            return [CardResponse(**card) for card in result.data or []]

        return await self.guard.run(operation)

    async def _insert_card(self, insert_data: Dict) -> CardResponse:
        async def operation():
            result = await self.supabase.table("cards").insert(insert_data).execute()
            if not result.data:
                raise TablesError("Failed to create card")
            return CardResponse(**result.data[0])

        card = await self.guard.run(operation)
        await self.table_service.touch_table(card.table_id)
        return card

    async def create_card(self, table_id: str, card_data: CardCreate) -> CardResponse:
        """Post a card to a table as the current user"""
        self.session.require_user_id()
        return await self._insert_card({
            "id": str(uuid4()),
            "table_id": table_id,
            "title": card_data.title,
            "body": card_data.body,
            "link_url": card_data.link_url,
            "author_name": self.session.author_name,
            "status": CardStatus.ACTIVE.value
        })

    async def update_card(self, card_id: str, card_data: CardUpdate) -> Optional[CardResponse]:
        update_data = card_data.model_dump(exclude_unset=True)
        if not update_data:
            return None

        async def operation():
            result = await self.supabase.table("cards")\
                .update(update_data)\
                .eq("id", card_id)\
                .execute()
            return CardResponse(**result.data[0]) if result.data else None

        return await self.guard.run(operation)

    async def mark_discussed(self, card_id: str) -> Optional[CardResponse]:
        return await self.update_card(card_id, CardUpdate(status=CardStatus.DISCUSSED))

    async def delete_card(self, card_id: str) -> None:
        # Any member may delete any card; the store does not check authorship either
        async def operation():
            await self.supabase.table("cards")\
                .delete()\
                .eq("id", card_id)\
                .execute()

        await self.guard.run(operation)

    def _share_author(self) -> str:
        author = self.session.display_name or self.session.email
        if not author:
            raise NotAuthenticated()
        return author

    async def share_reflection(self, reflection: ReflectionResponse, table_id: str) -> CardResponse:
        """Copy a whole reflection into a table as a new card"""
        card = await self._insert_card({
            "id": str(uuid4()),
            "table_id": table_id,
            "title": reflection.prompt,
            "body": reflection.body,
            "link_url": None,
            "author_name": self._share_author(),
            "status": CardStatus.ACTIVE.value,
            "source_reflection_id": reflection.id,
            "source_prompt": reflection.prompt
        })
        logger.info(f"Shared reflection {reflection.id} to table {table_id}")
        return card

    async def share_reflection_excerpt(
        self,
        reflection: ReflectionResponse,
        table_id: str,
        excerpt: ExcerptShare
    ) -> CardResponse:
        """Post a validated excerpt of a reflection as a card"""
        if excerpt.is_long:
            logger.info(f"Sharing a long excerpt ({len(excerpt.excerpt)} chars) to table {table_id}")
        card = await self._insert_card({
            "id": str(uuid4()),
            "table_id": table_id,
            "title": excerpt.title or garden_card_title(reflection.created_at),
            "body": excerpt.body,
            "link_url": None,
            "author_name": self._share_author(),
            "status": CardStatus.ACTIVE.value,
            "source_reflection_id": reflection.id,
            "source_prompt": reflection.prompt
        })
        logger.info(f"Shared reflection excerpt to table {table_id}")
        return card
