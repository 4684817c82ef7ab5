"""
tests/test_shares.py — Sharing Tests
====================================

Sharing by e-mail with optimistic member updates, partial invite failures,
revoking and leaving shares, and user search.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tables_sync.core.errors import CannotLeaveOwnTable, MemberUpdateFailed, TableNotFound, UserNotFound
from tables_sync.modules.tables.schemas import TableCreate
from tests.fakes import settle


@pytest.fixture
async def table(alice):
    return await alice.table_service.create_table(TableCreate(title="Book club", members=["Alice"]))


class TestShareTable:
    async def test_share_adds_member_and_grants_access(self, alice, bob, table, db):
        share = await alice.share_service.share_table(table.id, "bob@example.com")
        await settle()

        assert share.shared_with_user_id == bob.session.user_id
        assert share.permission == "write"
        assert db.find("tables", id=table.id)[0]["members"] == ["Alice", "Bob"]
        assert alice.cache.find_table(table.id).members == ["Alice", "Bob"]
        assert bob.cache.find_table(table.id) is not None

    async def test_share_notifies_invitee_and_existing_collaborators(self, alice, bob, make_user, table, db):
        carol = await make_user("carol@example.com", "Carol")
        await alice.share_service.share_table(table.id, "carol@example.com")
        await alice.share_service.share_table(table.id, "bob@example.com")
        await settle()

        events = {(row["user_id"], row["event_type"]) for row in db.rows["realtime_notifications"]}
        assert (bob.session.user_id, "share_created") in events
        assert (carol.session.user_id, "share_created") in events
        assert (carol.session.user_id, "member_added") in events
        assert alice.session.user_id not in {user_id for user_id, _ in events}
        assert carol.cache.find_table(table.id).members == ["Alice", "Carol", "Bob"]

    async def test_unknown_email_raises_and_leaves_members(self, alice, table):
        with pytest.raises(UserNotFound):
            await alice.share_service.share_table(table.id, "nobody@example.com")
        assert alice.cache.find_table(table.id).members == ["Alice"]

    async def test_invalid_email_rejected_before_any_call(self, alice, table):
        calls_before = len(alice.supabase.calls)
        with pytest.raises(ValidationError):
            await alice.share_service.share_table(table.id, "not-an-email")
        assert alice.supabase.calls[calls_before:] == []

    async def test_failed_share_insert(self, alice, bob, table):
        alice.supabase.fail_on("table_shares", MemberUpdateFailed("share was not created"))
        with pytest.raises(MemberUpdateFailed) as excinfo:
            await alice.share_service.share_table(table.id, "bob@example.com")
        assert excinfo.value.message == "Failed to add member: share was not created"
        assert alice.cache.find_table(table.id).members == ["Alice"]


class TestInviteMembers:
    async def test_reports_failed_invitees(self, alice, bob, table):
        result = await alice.share_service.invite_members(
            table.id, ["bob@example.com", "ghost@example.com", "nope"]
        )
        assert result.shared == ["bob@example.com"]
        assert result.failed == ["ghost@example.com", "nope"]
        assert not result.all_succeeded


class TestRevoke:
    async def test_remove_share_drops_member_and_access(self, alice, bob, table, db):
        await alice.share_service.share_table(table.id, "bob@example.com")
        await settle()

        await alice.share_service.remove_share(table.id, bob.session.user_id)
        await settle()

        assert db.find("table_shares", table_id=table.id) == []
        assert db.find("tables", id=table.id)[0]["members"] == ["Alice"]
        assert alice.cache.find_table(table.id).members == ["Alice"]
        assert await bob.table_service.fetch_tables() == []

    async def test_leave_shared_table(self, alice, bob, table, db):
        await alice.share_service.share_table(table.id, "bob@example.com")
        await settle()

        await bob.share_service.leave_shared_table(table.id)
        assert bob.cache.find_table(table.id) is None
        assert db.find("table_shares", table_id=table.id) == []

    async def test_owner_cannot_leave(self, alice, table):
        with pytest.raises(CannotLeaveOwnTable):
            await alice.share_service.leave_shared_table(table.id)

    async def test_leave_unknown_table(self, bob):
        with pytest.raises(TableNotFound):
            await bob.share_service.leave_shared_table("missing")

    async def test_fetch_shares(self, alice, bob, table):
        await alice.share_service.share_table(table.id, "bob@example.com")
        shares = await alice.share_service.fetch_shares(table.id)
        assert [s.shared_with_user_id for s in shares] == [bob.session.user_id]


class TestSearchUsers:
    async def test_matches_names_and_excludes_self(self, alice, bob, make_user):
        await make_user("robert@example.com", "Rob", first_name="Robert", last_name="Bobson")

        results = await alice.share_service.search_users("BOB")
        assert sorted(r.email for r in results) == ["bob@example.com", "robert@example.com"]
        assert {r.display_text for r in results} == {"Bob", "Robert Bobson"}

        assert await alice.share_service.search_users("alice") == []

    async def test_empty_query_makes_no_call(self, alice):
        calls_before = len(alice.supabase.calls)
        assert await alice.share_service.search_users("") == []
        assert alice.supabase.calls[calls_before:] == []
