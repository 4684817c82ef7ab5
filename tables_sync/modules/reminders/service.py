"""
In-process stand-in for the device's local notification scheduler.

Reminders are keyed by table, so scheduling replaces any earlier reminder for
the same table. Each carries a deep-link user_info that resolves back to the
table when the delivered reminder is opened.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Union

from tables_sync.core.errors import ReminderNotAuthorized
from tables_sync.core.schemas import utc_now
from tables_sync.modules.reminders.schemas import ReminderRequest, TABLE_REMINDER

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_BODY = "It's time to check in on this table with your collaborators."

DeliverCallback = Callable[[ReminderRequest], Union[None, Awaitable[None]]]
OpenTableCallback = Callable[[str], Union[None, Awaitable[None]]]


def reminder_identifier(table_id: str) -> str:
    return f"table-reminder-{table_id}"


class ReminderScheduler:
    def __init__(
        self,
        authorizer: Optional[Callable[[], bool]] = None,
        on_deliver: Optional[DeliverCallback] = None,
        on_open_table: Optional[OpenTableCallback] = None
    ):
        self.authorizer = authorizer
        self.on_deliver = on_deliver
        self.on_open_table = on_open_table
        self.is_authorized = False
        self._pending: Dict[str, ReminderRequest] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    def request_authorization(self) -> bool:
        """Ask for permission to deliver reminders. No authorizer means permission is granted."""
        try:
            self.is_authorized = self.authorizer() if self.authorizer else True
        except Exception as e:
            logger.error(f"Notification authorization error: {e}")
            self.is_authorized = False
        return self.is_authorized

    def schedule_reminder(
        self,
        table_id: str,
        table_title: str,
        fire_at: datetime,
        message: Optional[str] = None
    ) -> ReminderRequest:
        if not self.is_authorized and not self.request_authorization():
            raise ReminderNotAuthorized()
        if fire_at.tzinfo is None:
            fire_at = fire_at.replace(tzinfo=timezone.utc)

        self.cancel_reminder(table_id)
        request = ReminderRequest(
            identifier=reminder_identifier(table_id),
            table_id=table_id,
            title=f"Time to revisit: {table_title}",
            body=message or DEFAULT_REMINDER_BODY,
            fire_at=fire_at,
            user_info={"table_id": table_id, "type": TABLE_REMINDER}
        )
        self._pending[request.identifier] = request

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            delay = max(0.0, (fire_at - utc_now()).total_seconds())
            self._timers[request.identifier] = loop.call_later(delay, self._deliver, request.identifier)

        logger.info(f"Scheduled reminder for table '{table_title}' at {fire_at.isoformat()}")
        return request

    def _deliver(self, identifier: str) -> None:
        self._timers.pop(identifier, None)
        request = self._pending.pop(identifier, None)
        if request is None or self.on_deliver is None:
            return
        result = self.on_deliver(request)
        if asyncio.iscoroutine(result):
            asyncio.ensure_future(result)

    def cancel_reminder(self, table_id: str) -> None:
        identifier = reminder_identifier(table_id)
        timer = self._timers.pop(identifier, None)
        if timer is not None:
            timer.cancel()
        if self._pending.pop(identifier, None) is not None:
            logger.info(f"Cancelled reminder for table: {table_id}")

    def cancel_all(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._pending.clear()
        logger.info("Cancelled all pending reminders")

    def pending_reminders(self) -> List[ReminderRequest]:
        return list(self._pending.values())

    def has_pending_reminder(self, table_id: str) -> bool:
        return reminder_identifier(table_id) in self._pending

    async def open_from_user_info(self, user_info: Dict[str, str]) -> Optional[str]:
        """Resolve a tapped reminder to its table id and hand it to on_open_table"""
        table_id = user_info.get("table_id")
        if not table_id or user_info.get("type") != TABLE_REMINDER:
            return None
        logger.info(f"Opening table from reminder: {table_id}")
        if self.on_open_table is not None:
            result = self.on_open_table(table_id)
            if asyncio.iscoroutine(result):
                await result
        return table_id
