"""
Cross-user notification queue.

Events such as "table deleted by its owner" reach other users through rows in
realtime_notifications. Each recipient consumes them on two paths: a realtime
INSERT subscription (push) and a periodic query for unprocessed rows (poll).
Delivery is at-least-once, so every handler is idempotent.
"""
import asyncio
import logging
from typing import Dict, List, Optional

from pydantic import ValidationError
from supabase import AsyncClient

from tables_sync.config.settings import settings
from tables_sync.core.cache import ClientCache
from tables_sync.core.session import SessionGuard, SessionState
from tables_sync.modules.notifications.schemas import (
    NotificationEnvelope, TABLE_DELETED, SHARE_CREATED, MEMBER_ADDED
)
from tables_sync.modules.realtime.registry import SubscriptionRegistry, change_record
from tables_sync.modules.realtime.schemas import Interest

logger = logging.getLogger(__name__)

POLL_TASK_NAME = "notification-poll"


class NotificationSender:
    def __init__(self, supabase: AsyncClient, guard: SessionGuard):
        self.supabase = supabase
        self.guard = guard

    async def send(self, user_id: str, event_type: str, payload: Dict[str, str]) -> bool:
        """Queue an event for another user. Best effort: failures are logged, not raised."""
        async def operation():
            await self.supabase.table("realtime_notifications").insert({
                "user_id": user_id,
                "event_type": event_type,
                "payload": payload
            }).execute()

        try:
            await self.guard.run(operation)
            logger.info(f"Sent {event_type} notification to user {user_id}")
            return True
        except Exception as e:
            logger.warning(f"Failed to send {event_type} notification to user {user_id}: {e}")
            return False


class NotificationQueue:
    def __init__(
        self,
        supabase: AsyncClient,
        guard: SessionGuard,
        session: SessionState,
        cache: ClientCache,
        registry: SubscriptionRegistry,
        table_service,
        poll_interval: Optional[float] = None
    ):
        self.supabase = supabase
        self.guard = guard
        self.session = session
        self.cache = cache
        self.registry = registry
        self.table_service = table_service
        self.poll_interval = poll_interval if poll_interval is not None else settings.notification_poll_interval_sec
        self._handlers = {
            TABLE_DELETED: self._on_table_deleted,
            SHARE_CREATED: self._refresh_tables,
            MEMBER_ADDED: self._refresh_tables,
        }

    @property
    def is_polling(self) -> bool:
        return self.registry.has_task(POLL_TASK_NAME)

    async def start(self) -> None:
        """Subscribe to pushed notifications and start the polling fallback"""
        user_id = self.session.require_user_id()
        await self.registry.subscribe(Interest.notifications(user_id), self.handle_push)
        task = asyncio.create_task(self._poll_loop(), name=POLL_TASK_NAME)
        self.registry.track_task(POLL_TASK_NAME, task)
        logger.info(f"Notification polling started ({self.poll_interval:g}s interval)")

    async def stop(self) -> None:
        if self.session.user_id:
            await self.registry.unsubscribe(Interest.notifications(self.session.user_id))
        if self.registry.cancel_task(POLL_TASK_NAME):
            logger.info("Notification polling stopped")

    # Event handling

    async def _on_table_deleted(self, payload: Dict[str, str]) -> None:
        table_id = payload.get("table_id")
        if table_id:
            logger.info(f"Remote table deletion detected: {table_id}")
            self.cache.remove_table(table_id)

    async def _refresh_tables(self, payload: Dict[str, str]) -> None:
        await self.table_service.fetch_tables()

    async def process_event(self, event_type: str, payload: Dict[str, str]) -> None:
        """Apply one event to the cache. Unknown event types fall back to a full refresh."""
        logger.info(f"Processing notification: {event_type}")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.warning(f"Unknown notification type: {event_type} - refreshing tables")
            handler = self._refresh_tables
        await handler(payload)

    async def mark_processed(self, notification_id: str) -> None:
        async def operation():
            await self.supabase.table("realtime_notifications")\
                .update({"processed": True})\
                .eq("id", notification_id)\
                .execute()

        try:
            await self.guard.run(operation)
        except Exception as e:
            logger.warning(f"Failed to mark notification {notification_id} as processed: {e}")

    async def handle_push(self, payload: Dict) -> None:
        """Realtime callback for an INSERT into realtime_notifications"""
        event_type, record = change_record(payload)
        if event_type not in (None, "INSERT") or not record:
            return
        envelope = NotificationEnvelope(**record)
        await self.process_event(envelope.event_type, envelope.payload)
        await self.mark_processed(envelope.id)

    # Polling fallback

    async def fetch_pending_rows(self) -> List[Dict]:
        """Raw unprocessed rows for the current user, oldest first"""
        user_id = self.session.require_user_id()

        async def operation():
            result = await self.supabase.table("realtime_notifications")\
                .select("*")\
                .eq("user_id", user_id)\
                .eq("processed", False)\
                .order("created_at")\
                .execute()
            return result.data or []

        return await self.guard.run(operation)

    async def fetch_pending(self) -> List[NotificationEnvelope]:
        """Decodable unprocessed envelopes, oldest first"""
        envelopes = []
        for row in await self.fetch_pending_rows():
            try:
                envelopes.append(NotificationEnvelope(**row))
            except ValidationError as e:
                logger.warning(f"Skipping undecodable notification {row.get('id')}: {e}")
        return envelopes

    async def process_pending(self) -> int:
        """Handle every unprocessed envelope, oldest first. Returns how many were handled."""
        rows = await self.fetch_pending_rows()
        if rows:
            logger.info(f"Processing {len(rows)} queued notification(s)")

        handled = 0
        for row in rows:
            try:
                envelope = NotificationEnvelope(**row)
            except ValidationError as e:
                # Retired, not retried
                logger.error(f"Discarding undecodable notification {row.get('id')}: {e}")
                if row.get("id"):
                    await self.mark_processed(row["id"])
                continue
            try:
                await self.process_event(envelope.event_type, envelope.payload)
            except Exception as e:
                # Left unprocessed; the next poll retries it
                logger.error(f"Failed to handle notification {envelope.id}: {e}")
                continue
            await self.mark_processed(envelope.id)
            handled += 1
        return handled

    async def _poll_loop(self) -> None:
        while True:
            if self.session.is_authenticated:
                try:
                    await self.process_pending()
                except Exception as e:
                    logger.error(f"Notification polling error: {e}")
            await asyncio.sleep(self.poll_interval)
