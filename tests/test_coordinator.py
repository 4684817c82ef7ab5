"""
tests/test_coordinator.py — Coordinator Lifecycle and Flows
===========================================================
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from tables_sync.core.coordinator import Coordinator
from tables_sync.core.errors import NotAuthenticated, ReminderNotAuthorized
from tables_sync.core.schemas import utc_now
from tables_sync.database.local_store import LocalStore
from tables_sync.database.supabase_client import SupabaseClient
from tables_sync.main import bootstrap, configure_logging
from tables_sync.modules.cards.schemas import CardCreate
from tables_sync.modules.comments.schemas import CommentCreate
from tables_sync.modules.realtime.schemas import Interest
from tables_sync.modules.reflections.schemas import ReflectionCreate
from tables_sync.modules.reminders.service import ReminderScheduler
from tables_sync.modules.tables.schemas import TableCreate
from tests.fakes import expired_token_error, settle


class TestLifecycle:
    async def test_sign_up_loads_state_and_opens_channels(self, alice):
        user_id = alice.session.user_id
        assert alice.is_authenticated
        assert alice.session.display_name == "Alice"
        assert set(alice.registry.active_keys) == {
            Interest.owned_tables(user_id).key,
            Interest.table_shares(user_id).key,
            Interest.notifications(user_id).key,
        }
        assert alice.notifications.is_polling

    async def test_sign_out_tears_everything_down(self, alice, db):
        await alice.table_service.create_table(TableCreate(title="Mine"))
        await alice.sign_out()
        await settle()

        assert not alice.is_authenticated
        assert alice.tables == []
        assert alice.reflections == []
        assert alice.registry.active_keys == []
        assert not alice.notifications.is_polling
        assert db.channels == []

    async def test_sign_in_restores_tables(self, alice):
        table = await alice.table_service.create_table(TableCreate(title="Mine"))
        await alice.sign_out()

        await alice.sign_in("alice@example.com", "correct-horse-battery")
        await settle()
        assert [t.id for t in alice.tables] == [table.id]
        assert alice.notifications.is_polling

    async def test_wrong_password(self, alice):
        await alice.sign_out()
        with pytest.raises(NotAuthenticated):
            await alice.sign_in("alice@example.com", "wrong")
        assert not alice.is_authenticated

    async def test_restore_session_on_new_coordinator(self, alice, config):
        table = await alice.table_service.create_table(TableCreate(title="Persisted"))
        restored = Coordinator(alice.supabase, LocalStore(None), config=config)
        try:
            assert await restored.restore_session()
            assert restored.session.user_id == alice.session.user_id
            assert [t.id for t in restored.tables] == [table.id]
        finally:
            await restored.teardown()

    async def test_restore_without_session(self, db, config):
        coordinator = Coordinator(db.client(), LocalStore(None), config=config)
        assert not await coordinator.restore_session()
        assert not coordinator.is_authenticated

    async def test_lost_session_tears_down(self, alice):
        alice.supabase.auth.refresh_error = RuntimeError("refresh endpoint unreachable")
        alice.supabase.fail_on("tables", expired_token_error())

        with pytest.raises(NotAuthenticated):
            await alice.table_service.fetch_tables()
        await settle()

        assert not alice.is_authenticated
        assert alice.registry.active_keys == []
        assert not alice.notifications.is_polling

    async def test_reminder_authorization_refused_is_not_fatal(self, make_user):
        carol = await make_user(
            "carol@example.com", "Carol", reminders=ReminderScheduler(authorizer=lambda: False)
        )
        assert carol.is_authenticated
        assert not carol.reminders.is_authorized

        table = await carol.table_service.create_table(TableCreate(title="No reminders"))
        with pytest.raises(ReminderNotAuthorized):
            await carol.set_reminder(table.id, utc_now() + timedelta(hours=1))


class TestScreenSubscriptions:
    async def test_watch_cards_delivers_fresh_lists(self, alice, bob):
        table = await alice.table_service.create_table(TableCreate(title="Shared", members=["Alice"]))
        await alice.share_service.share_table(table.id, "bob@example.com")
        await settle()
        seen = []

        async def on_update(cards):
            seen.append([c.body for c in cards])

        await alice.watch_cards(table.id, on_update)
        await bob.card_service.create_card(table.id, CardCreate(body="First idea"))
        await settle()
        assert seen[-1] == ["First idea"]

        await alice.unwatch_cards(table.id)
        count = len(seen)
        await bob.card_service.create_card(table.id, CardCreate(body="Second idea"))
        await settle()
        assert len(seen) == count

    async def test_watch_comments(self, alice):
        table = await alice.table_service.create_table(TableCreate(title="Solo"))
        card = await alice.card_service.create_card(table.id, CardCreate(body="Discuss"))
        seen = []

        async def on_update(comments):
            seen.append([(c.body, c.author_name) for c in comments])

        await alice.watch_comments(card.id, on_update)
        await alice.comment_service.create_comment(card.id, CommentCreate(body="Agreed"))
        await alice.comment_service.create_comment(card.id, CommentCreate(body="Let's go"))
        await settle()
        assert seen[-1] == [("Agreed", "Alice"), ("Let's go", "Alice")]

        await alice.unwatch_comments(card.id)
        assert not alice.registry.is_subscribed(Interest.comments(card.id))


class TestCompositeFlows:
    async def test_create_table_with_invites(self, alice, bob):
        created = await alice.create_table_with_invites(
            "Weekend plans", "Where to go", ["bob@example.com", "ghost@example.com"]
        )
        assert created.table.members == ["Alice", "Bob"]
        assert created.table.context == "Where to go"
        assert created.invites.failed == ["ghost@example.com"]
        assert created.invites.shared == ["bob@example.com"]

    async def test_create_table_from_reflection(self, alice):
        reflection = await alice.reflection_service.create_reflection(
            ReflectionCreate(body="I keep coming back to the idea of teaching.", prompt="What energises you?")
        )
        created = await alice.create_table_from_reflection(
            reflection,
            "Teaching?",
            "the idea of teaching keeps coming back",
            question="Should I try it?",
            next_step="Talk to Sam",
            emails=["ghost@example.com"],
        )
        cards = await alice.card_service.fetch_cards(created.table.id)

        assert len(cards) == 3
        by_title = {c.title: c for c in cards}
        assert by_title["Question"].body == "Should I try it?"
        assert by_title["Next step"].body == "Talk to Sam"
        excerpt_card = next(c for c in cards if c.source_reflection_id == reflection.id)
        assert excerpt_card.body == "the idea of teaching keeps coming back"
        assert excerpt_card.source_prompt == "What energises you?"
        assert excerpt_card.title.startswith("From my Garden · ")
        assert created.invites.failed == ["ghost@example.com"]

    async def test_set_reminder_with_nudge(self, alice, db):
        table = await alice.table_service.create_table(TableCreate(title="Check-in"))
        when = utc_now() + timedelta(days=3)
        updated = await alice.set_reminder(table.id, when, nudge_everyone=True)

        assert updated.next_reminder_date == when
        [nudge] = db.find("nudges", table_id=table.id)
        assert nudge["message"] == "Nudge: revisit Check-in"
        assert nudge["author_name"] == "Alice"
        [reminder] = alice.reminders.pending_reminders()
        assert reminder.body == "Time to check in with your collaborators!"
        assert reminder.title == "Time to revisit: Check-in"

    async def test_set_reminder_just_for_me(self, alice, db):
        table = await alice.table_service.create_table(TableCreate(title="Solo"))
        await alice.set_reminder(table.id, utc_now() + timedelta(days=3))

        assert db.find("nudges", table_id=table.id) == []
        [reminder] = alice.reminders.pending_reminders()
        assert reminder.body == "You set a reminder to revisit this table."


class TestBootstrap:
    async def test_bootstrap_restores_persisted_session(self, alice, config, monkeypatch):
        seen = {}

        async def fake_get_client(storage=None, config=None):
            seen["storage"] = storage
            return alice.supabase

        monkeypatch.setattr(SupabaseClient, "get_client", fake_get_client)
        configure_logging("DEBUG")

        coordinator = await bootstrap(config)
        try:
            assert coordinator.is_authenticated
            assert coordinator.session.email == "alice@example.com"
            assert seen["storage"].store is coordinator.local_store
        finally:
            await coordinator.teardown()
