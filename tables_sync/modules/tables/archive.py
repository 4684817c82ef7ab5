"""
Per-device archive state for tables the current user does not own.

Non-owners cannot change a table's status on the server, so "archived" for
them is a local override: a set of table ids kept in device-local storage and
applied on top of every fetch. It is never written back to the server.
"""
import logging
from typing import Iterable, List, Set

from tables_sync.database.local_store import LocalStore
from tables_sync.modules.tables.schemas import TableResponse, TableStatus

logger = logging.getLogger(__name__)

LOCAL_ARCHIVED_TABLES_KEY = "localArchivedTableIds"


class LocalArchiveStore:
    def __init__(self, store: LocalStore):
        self.store = store

    def get_ids(self) -> Set[str]:
        return set(self.store.get(LOCAL_ARCHIVED_TABLES_KEY, []) or [])

    def contains(self, table_id: str) -> bool:
        return table_id in self.get_ids()

    def add(self, table_id: str) -> None:
        self.store.update(
            LOCAL_ARCHIVED_TABLES_KEY,
            lambda ids: sorted(set(ids or []) | {table_id}),
        )

    def remove(self, table_id: str) -> None:
        self.store.update(
            LOCAL_ARCHIVED_TABLES_KEY,
            lambda ids: sorted(set(ids or []) - {table_id}),
        )


def apply_local_archive(
    tables: Iterable[TableResponse],
    current_user_id: str,
    archived_ids: Set[str]
) -> List[TableResponse]:
    """Show locally archived, non-owned tables as archived. Owned tables keep the server status."""
    result = []
    for table in tables:
        if table.owner_id != current_user_id and table.id in archived_ids:
            if table.status != TableStatus.ARCHIVED.value:
                logger.debug(f"Applied local archive to shared table '{table.title}'")
            table = table.model_copy(update={"status": TableStatus.ARCHIVED.value})
        result.append(table)
    return result
