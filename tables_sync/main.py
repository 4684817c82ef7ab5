"""Wiring for applications embedding the sync coordinator."""
import logging
from typing import Optional

from tables_sync.config.settings import Settings, settings
from tables_sync.core.coordinator import Coordinator
from tables_sync.database.local_store import LocalAuthStorage, LocalStore
from tables_sync.database.supabase_client import SupabaseClient
from tables_sync.modules.reminders.service import ReminderScheduler

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )


async def bootstrap(
    config: Settings = settings,
    reminders: Optional[ReminderScheduler] = None
) -> Coordinator:
    """Build a coordinator from settings and pick up any persisted session"""
    local_store = LocalStore(config.get_local_store_path())
    supabase = await SupabaseClient.get_client(LocalAuthStorage(local_store), config)
    coordinator = Coordinator(supabase, local_store, reminders=reminders, config=config)

    if await coordinator.restore_session():
        logger.info(f"{config.app_name} started for {coordinator.session.email}")
    else:
        logger.info(f"{config.app_name} started, no persisted session")
    return coordinator
