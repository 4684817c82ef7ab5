"""
Coordinator: the context object the UI layer holds.

It owns the session, the in-memory cache and one service per entity, and
drives the lifecycle: construct -> sign in (or restore) -> operate -> sign out.
Signing in loads the profile, tables and reflections and opens the user's
realtime channels plus the notification poll loop; signing out, or losing the
session inside the Session Guard, tears all of that down.
"""
import logging
from datetime import datetime
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

from pydantic import BaseModel
from supabase import AsyncClient

from tables_sync.config.settings import Settings, settings as default_settings
from tables_sync.core.cache import ClientCache
from tables_sync.core.session import SessionGuard, SessionState
from tables_sync.database.local_store import LocalStore
from tables_sync.modules.auth.schemas import SignInRequest, SignUpRequest
from tables_sync.modules.auth.service import AuthService
from tables_sync.modules.cards.schemas import CardCreate, CardResponse, ExcerptShare
from tables_sync.modules.cards.service import CardService
from tables_sync.modules.comments.schemas import CommentResponse
from tables_sync.modules.comments.service import CommentService
from tables_sync.modules.notifications.service import NotificationQueue, NotificationSender
from tables_sync.modules.nudges.service import NudgeService
from tables_sync.modules.realtime.registry import SubscriptionRegistry
from tables_sync.modules.realtime.schemas import Interest
from tables_sync.modules.reflections.schemas import ReflectionResponse
from tables_sync.modules.reflections.service import ReflectionService
from tables_sync.modules.reminders.service import ReminderScheduler
from tables_sync.modules.shares.schemas import InviteResult
from tables_sync.modules.shares.service import ShareService
from tables_sync.modules.tables.archive import LocalArchiveStore
from tables_sync.modules.tables.schemas import TableCreate, TableResponse, TableUpdate
from tables_sync.modules.tables.service import TableService

logger = logging.getLogger(__name__)

CardsCallback = Callable[[List[CardResponse]], Awaitable[None]]
CommentsCallback = Callable[[List[CommentResponse]], Awaitable[None]]


class CreatedTable(BaseModel):
    table: TableResponse
    invites: InviteResult


class Coordinator:
    def __init__(
        self,
        supabase: AsyncClient,
        local_store: Optional[LocalStore] = None,
        reminders: Optional[ReminderScheduler] = None,
        config: Optional[Settings] = None
    ):
        self.supabase = supabase
        self.config = config or default_settings
        self.local_store = local_store or LocalStore(self.config.get_local_store_path())
        self.reminders = reminders if reminders is not None else ReminderScheduler()

        self.session = SessionState()
        self.cache = ClientCache()
        self.guard = SessionGuard(supabase, self.session, on_signed_out=self._on_session_lost)
        self.registry = SubscriptionRegistry(supabase)
        self.notifier = NotificationSender(supabase, self.guard)

        self.auth_service = AuthService(supabase, self.guard, self.session, self.cache)
        self.table_service = TableService(
            supabase, self.guard, self.session, self.cache,
            LocalArchiveStore(self.local_store),
            notifier=self.notifier,
            reminders=self.reminders
        )
        self.card_service = CardService(supabase, self.guard, self.session, self.table_service)
        self.comment_service = CommentService(supabase, self.guard, self.session)
        self.nudge_service = NudgeService(supabase, self.guard, self.session)
        self.reflection_service = ReflectionService(supabase, self.guard, self.session, self.cache)
        self.share_service = ShareService(
            supabase, self.guard, self.session, self.cache, self.table_service, notifier=self.notifier
        )
        self.notifications = NotificationQueue(
            supabase, self.guard, self.session, self.cache, self.registry, self.table_service,
            poll_interval=self.config.notification_poll_interval_sec
        )

    @property
    def tables(self) -> List[TableResponse]:
        return self.cache.tables

    @property
    def reflections(self) -> List[ReflectionResponse]:
        return self.cache.reflections

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    # Lifecycle

    async def _after_sign_in(self) -> None:
        await self.auth_service.fetch_profile()
        try:
            await self.table_service.fetch_tables()
        except Exception as e:
            logger.error(f"Initial table fetch failed: {e}")
        await self.reflection_service.fetch_reflections()
        await self.start_realtime()

    async def restore_session(self) -> bool:
        if not await self.auth_service.restore_session():
            return False
        await self._after_sign_in()
        return True

    async def sign_up(
        self,
        email: str,
        password: str,
        display_name: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> None:
        await self.auth_service.sign_up(SignUpRequest(
            email=email,
            password=password,
            display_name=display_name,
            first_name=first_name,
            last_name=last_name
        ))
        await self._after_sign_in()

    async def sign_in(self, email: str, password: str) -> None:
        await self.auth_service.sign_in(SignInRequest(email=email, password=password))
        await self._after_sign_in()

    async def sign_out(self) -> None:
        await self.teardown()
        await self.auth_service.sign_out()

    async def teardown(self) -> None:
        """Close every channel, stop polling and drop cached data"""
        await self.registry.unsubscribe_all()
        self.cache.clear()

    async def _on_session_lost(self) -> None:
        logger.warning("Session could not be refreshed; signing out locally")
        await self.teardown()

    async def start_realtime(self) -> None:
        """Watch the user's owned tables and shares, and start notification delivery"""
        user_id = self.session.require_user_id()
        await self.registry.subscribe(Interest.owned_tables(user_id), self._refresh_tables)
        await self.registry.subscribe(Interest.table_shares(user_id), self._refresh_tables)
        await self.notifications.start()
        if not self.reminders.is_authorized and not self.reminders.request_authorization():
            logger.info("Reminders not authorized; continuing without local reminders")

    async def _refresh_tables(self, payload=None) -> None:
        await self.table_service.fetch_tables()

    # Screen-level subscriptions

    async def watch_cards(self, table_id: str, on_update: CardsCallback) -> None:
        """Re-fetch a table's cards on every change and pass them to on_update"""
        async def on_change(payload):
            await on_update(await self.card_service.fetch_cards(table_id))

        await self.registry.subscribe(Interest.cards(table_id), on_change)

    async def unwatch_cards(self, table_id: str) -> None:
        await self.registry.unsubscribe(Interest.cards(table_id))

    async def watch_comments(self, card_id: str, on_update: CommentsCallback) -> None:
        async def on_change(payload):
            await on_update(await self.comment_service.fetch_comments(card_id))

        await self.registry.subscribe(Interest.comments(card_id), on_change)

    async def unwatch_comments(self, card_id: str) -> None:
        await self.registry.unsubscribe(Interest.comments(card_id))

    # Composite flows

    async def create_table_with_invites(
        self,
        title: str,
        context: Optional[str] = None,
        emails: Iterable[str] = ()
    ) -> CreatedTable:
        """Create a table with the creator as its only member, then invite each address"""
        table = await self.table_service.create_table(TableCreate(
            title=title,
            context=context or None,
            members=[self.session.display_name or self.session.email or "You"]
        ))
        invites = await self.share_service.invite_members(table.id, emails)
        return CreatedTable(table=self.cache.find_table(table.id) or table, invites=invites)

    async def create_table_from_reflection(
        self,
        reflection: ReflectionResponse,
        title: str,
        excerpt: str,
        question: Optional[str] = None,
        next_step: Optional[str] = None,
        emails: Iterable[str] = ()
    ) -> CreatedTable:
        """Start a new table seeded with an excerpt of a reflection"""
        # Validated before anything is written
        share = ExcerptShare(excerpt=excerpt)
        created = await self.create_table_with_invites(title, None, ())
        table_id = created.table.id

        await self.card_service.share_reflection_excerpt(reflection, table_id, share)
        seeds: List[Tuple[str, Optional[str]]] = [("Question", question), ("Next step", next_step)]
        for seed_title, seed_body in seeds:
            if seed_body and seed_body.strip():
                await self.card_service.create_card(table_id, CardCreate(title=seed_title, body=seed_body.strip()))

        created.invites = await self.share_service.invite_members(table_id, emails)
        return created

    async def set_reminder(
        self,
        table_id: str,
        when: datetime,
        nudge_everyone: bool = False
    ) -> TableResponse:
        """Store the next reminder date, optionally nudge collaborators, and schedule the local reminder"""
        table = await self.table_service.update_table(table_id, TableUpdate(next_reminder_date=when))
        if nudge_everyone:
            await self.nudge_service.create_nudge(table_id, f"Nudge: revisit {table.title}")
            message = "Time to check in with your collaborators!"
        else:
            message = "You set a reminder to revisit this table."
        self.reminders.schedule_reminder(table_id, table.title, when, message)
        return table
