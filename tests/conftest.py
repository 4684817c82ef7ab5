"""
tests/conftest.py — Shared Test Fixtures
========================================
"""

from __future__ import annotations

import pytest

from tables_sync.config.settings import Settings
from tables_sync.core.coordinator import Coordinator
from tables_sync.database.local_store import LocalStore
from tables_sync.modules.reminders.service import ReminderScheduler
from tests.fakes import FakeDatabase, settle


@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def client(db):
    return db.client()


@pytest.fixture
def config() -> Settings:
    """Memory-only local store; the poll loop runs once at start, then effectively never."""
    return Settings(
        supabase_url="http://localhost:54321",
        supabase_key="test-anon-key",
        local_store_path="",
        notification_poll_interval_sec=3600,
    )


@pytest.fixture
async def make_user(db, config):
    """Factory signing up a user on their own client and coordinator."""
    coordinators = []

    async def _make(email: str, display_name: str, reminders: ReminderScheduler = None, **names) -> Coordinator:
        coordinator = Coordinator(
            db.client(),
            LocalStore(None),
            reminders=reminders or ReminderScheduler(),
            config=config,
        )
        await coordinator.sign_up(email, "correct-horse-battery", display_name, **names)
        await settle()
        coordinators.append(coordinator)
        return coordinator

    yield _make

    for coordinator in coordinators:
        await coordinator.teardown()
        coordinator.reminders.cancel_all()


@pytest.fixture
async def alice(make_user):
    return await make_user("alice@example.com", "Alice")


@pytest.fixture
async def bob(make_user):
    return await make_user("bob@example.com", "Bob")
