"""
Registry of live realtime subscriptions, keyed by interest.

Each subscription owns one realtime channel, a queue the channel callback
feeds, and a consumer task that runs the async on_change callback once per
change event. Re-subscribing to an interest tears the previous subscription
down first. Named background tasks (the notification poll loop) are tracked
here too so unsubscribe_all() stops everything on sign-out.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from supabase import AsyncClient

from tables_sync.modules.realtime.schemas import Interest

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Dict[str, Any]], Awaitable[None]]

_STOP = object()


def change_record(payload: Dict[str, Any]) -> Tuple[Optional[str], Dict[str, Any]]:
    """Return (event type, new record) from a postgres_changes payload."""
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    event_type = data.get("type") or data.get("eventType")
    record = data.get("record") or data.get("new") or {}
    return event_type, record


class Subscription:
    def __init__(self, interest: Interest, channel, on_change: ChangeCallback):
        self.interest = interest
        self.channel = channel
        self.on_change = on_change
        self.queue: asyncio.Queue = asyncio.Queue()
        self.cancelled = asyncio.Event()
        self.task: Optional[asyncio.Task] = None

    def push(self, payload: Dict[str, Any]) -> None:
        # Invoked synchronously by the realtime client
        if not self.cancelled.is_set():
            self.queue.put_nowait(payload)

    async def consume(self) -> None:
        while not self.cancelled.is_set():
            payload = await self.queue.get()
            if payload is _STOP or self.cancelled.is_set():
                break
            logger.debug(f"Realtime change on {self.interest.channel_name}")
            try:
                await self.on_change(payload)
            except Exception as e:
                logger.error(f"Realtime callback for {self.interest.key} failed: {e}")

    def cancel(self) -> None:
        """Stop consuming. An in-flight callback is allowed to finish."""
        self.cancelled.set()
        self.queue.put_nowait(_STOP)


class SubscriptionRegistry:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase
        self._subscriptions: Dict[str, Subscription] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def active_keys(self) -> List[str]:
        return list(self._subscriptions)

    def is_subscribed(self, interest: Interest) -> bool:
        return interest.key in self._subscriptions

    def get(self, interest: Interest) -> Optional[Subscription]:
        return self._subscriptions.get(interest.key)

    async def subscribe(self, interest: Interest, on_change: ChangeCallback) -> Subscription:
        """Open a channel for `interest`, replacing any existing one."""
        await self.unsubscribe(interest)

        channel = self.supabase.channel(interest.channel_name)
        subscription = Subscription(interest, channel, on_change)
        channel.on_postgres_changes(
            event=interest.event,
            callback=subscription.push,
            table=interest.table,
            schema="public",
            filter=interest.filter,
        )
        self._subscriptions[interest.key] = subscription
        subscription.task = asyncio.create_task(
            subscription.consume(), name=f"realtime:{interest.key}"
        )

        try:
            await channel.subscribe()
        except Exception:
            if self._subscriptions.get(interest.key) is subscription:
                del self._subscriptions[interest.key]
            subscription.cancel()
            try:
                await self.supabase.remove_channel(channel)
            except Exception as e:
                logger.warning(f"Failed to remove channel {interest.channel_name}: {e}")
            raise

        logger.info(f"Subscribed to {interest.channel_name}")
        return subscription

    async def unsubscribe(self, interest: Interest) -> None:
        subscription = self._subscriptions.pop(interest.key, None)
        if subscription is None:
            return
        await self._teardown(subscription)

    async def _teardown(self, subscription: Subscription) -> None:
        subscription.cancel()
        try:
            await self.supabase.remove_channel(subscription.channel)
        except Exception as e:
            logger.warning(f"Failed to remove channel {subscription.interest.channel_name}: {e}")
        logger.info(f"Unsubscribed from {subscription.interest.channel_name}")

    def track_task(self, name: str, task: asyncio.Task) -> None:
        """Keep a background task alive until cancel_task(name) or unsubscribe_all()."""
        previous = self._tasks.pop(name, None)
        if previous is not None and previous is not task:
            previous.cancel()
        self._tasks[name] = task

        def _forget(done: asyncio.Task):
            if self._tasks.get(name) is done:
                del self._tasks[name]

        task.add_done_callback(_forget)

    def has_task(self, name: str) -> bool:
        return name in self._tasks

    def cancel_task(self, name: str) -> bool:
        task = self._tasks.pop(name, None)
        if task is None:
            return False
        task.cancel()
        return True

    async def unsubscribe_all(self) -> None:
        subscriptions = list(self._subscriptions.values())
        self._subscriptions.clear()
        for subscription in subscriptions:
            await self._teardown(subscription)
        # Last, since the caller may be one of these tasks
        for name in list(self._tasks):
            self.cancel_task(name)
