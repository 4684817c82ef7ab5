from supabase import AsyncClient
from tables_sync.core.cache import ClientCache
from tables_sync.core.errors import TablesError, TableNotFound, NotTableOwner
from tables_sync.core.schemas import format_timestamp, utc_now
from tables_sync.core.session import SessionGuard, SessionState
from tables_sync.modules.notifications.schemas import TABLE_DELETED
from tables_sync.modules.tables.archive import LocalArchiveStore, apply_local_archive
from tables_sync.modules.tables.schemas import TableCreate, TableUpdate, TableResponse, TableStatus
from typing import Iterable, List, Optional
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class TableService:
    def __init__(
        self,
        supabase: AsyncClient,
        guard: SessionGuard,
        session: SessionState,
        cache: ClientCache,
        archive: LocalArchiveStore,
        notifier=None,
        reminders=None
    ):
        self.supabase = supabase
        self.guard = guard
        self.session = session
        self.cache = cache
        self.archive = archive
        self.notifier = notifier
        self.reminders = reminders

    def _reconcile(self, tables: List[TableResponse]) -> List[TableResponse]:
        return apply_local_archive(tables, self.session.user_id, self.archive.get_ids())

    def _cancel_reminder(self, table_id: str) -> None:
        if self.reminders is None:
            return
        try:
            self.reminders.cancel_reminder(table_id)
        except Exception as e:
            logger.warning(f"Failed to cancel reminder for table {table_id}: {e}")

    def _require_cached_table(self, table_id: str) -> TableResponse:
        table = self.cache.find_table(table_id)
        if table is None:
            raise TableNotFound()
        return table

    def _set_cached_status(self, table_id: str, status: TableStatus) -> Optional[TableResponse]:
        table = self.cache.find_table(table_id)
        if table is None:
            return None
        updated = table.model_copy(update={"status": status.value})
        self.cache.replace_table(updated)
        return updated

    async def fetch_tables(self) -> List[TableResponse]:
        """Fetch every table visible to the user, newest activity first, and replace the cache"""
        self.session.require_user_id()

        async def operation():
            result = await self.supabase.table("tables")\
                .select("*")\
                .order("updated_at", desc=True)\
                .execute()
            return [TableResponse(**table) for table in result.data or []]

        tables = self._reconcile(await self.guard.run(operation))
        self.cache.tables = tables
        logger.debug(f"Fetched {len(tables)} tables")
        return tables

    async def fetch_table(self, table_id: str, reconcile: bool = True) -> TableResponse:
        """Fetch a single table by ID"""
        async def operation():
            result = await self.supabase.table("tables")\
                .select("*")\
                .eq("id", table_id)\
                .maybe_single()\
                .execute()
            if result is None or not result.data:
                raise TableNotFound()
            return TableResponse(**result.data)

        table = await self.guard.run(operation)
        if reconcile:
            table = self._reconcile([table])[0]
        return table

    async def create_table(self, table_data: TableCreate) -> TableResponse:
        """Create a table owned by the current user"""
        user_id = self.session.require_user_id()
        insert_data = {
            "id": str(uuid4()),
            "title": table_data.title,
            "context": table_data.context,
            "status": TableStatus.ACTIVE.value,
            "members": table_data.members,
            "next_reminder_date": None,
            "owner_id": user_id
        }

        async def operation():
            result = await self.supabase.table("tables").insert(insert_data).execute()
            if not result.data:
                raise TablesError("Failed to create table")
            return TableResponse(**result.data[0])

        table = await self.guard.run(operation)
        self.cache.tables.insert(0, table)
        logger.info(f"Created table '{table.title}' ({table.id})")
        return table

    async def update_table(self, table_id: str, table_data: TableUpdate) -> TableResponse:
        """Update the fields explicitly set on table_data. Clearing the reminder cancels the local one."""
        fields = table_data.model_dump(exclude_unset=True)
        update_data = {k: fields[k] for k in ("title", "context", "status") if k in fields}

        reminder_cleared = False
        if "next_reminder_date" in fields:
            reminder = fields["next_reminder_date"]
            update_data["next_reminder_date"] = format_timestamp(reminder) if reminder else None
            reminder_cleared = reminder is None
        update_data["updated_at"] = format_timestamp(utc_now())

        async def operation():
            result = await self.supabase.table("tables")\
                .update(update_data)\
                .eq("id", table_id)\
                .execute()
            if not result.data:
                raise TableNotFound()
            return TableResponse(**result.data[0])

        table = self._reconcile([await self.guard.run(operation)])[0]
        if reminder_cleared:
            self._cancel_reminder(table_id)
        self.cache.replace_table(table)
        return table

    async def touch_table(self, table_id: str) -> None:
        """Bump updated_at so the table sorts as recently active. Best effort."""
        async def operation():
            await self.supabase.table("tables")\
                .update({"updated_at": format_timestamp(utc_now())})\
                .eq("id", table_id)\
                .execute()

        try:
            await self.guard.run(operation)
        except Exception as e:
            logger.warning(f"Failed to touch table {table_id}: {e}")

    async def delete_table(self, table_id: str) -> bool:
        """Delete a table (owner only) and tell every collaborator it is gone"""
        user_id = self.session.require_user_id()
        table = self._require_cached_table(table_id)
        if table.owner_id != user_id:
            raise NotTableOwner()

        async def operation():
            # Collaborators must be read first: the delete cascades to table_shares
            shares = await self.supabase.table("table_shares")\
                .select("shared_with_user_id")\
                .eq("table_id", table_id)\
                .execute()
            await self.supabase.table("tables")\
                .delete()\
                .eq("id", table_id)\
                .execute()
            return [share["shared_with_user_id"] for share in shares.data or []]

        collaborator_ids = await self.guard.run(operation)
        self._cancel_reminder(table_id)
        self.cache.remove_table(table_id)
        logger.info(f"Deleted table '{table.title}', notifying {len(collaborator_ids)} collaborator(s)")

        if self.notifier is not None:
            for collaborator_id in collaborator_ids:
                await self.notifier.send(
                    collaborator_id,
                    TABLE_DELETED,
                    {"table_id": table_id, "table_title": table.title}
                )
        return True

    async def archive_table(self, table_id: str) -> TableResponse:
        """Owners archive on the server; everyone else archives on this device only"""
        user_id = self.session.require_user_id()
        table = self._require_cached_table(table_id)

        if table.owner_id == user_id:
            async def operation():
                await self.supabase.table("tables")\
                    .update({"status": TableStatus.ARCHIVED.value})\
                    .eq("id", table_id)\
                    .execute()

            await self.guard.run(operation)
            logger.info(f"Archived table '{table.title}'")
        else:
            self.archive.add(table_id)
            logger.info(f"Archived shared table '{table.title}' locally")

        self._cancel_reminder(table_id)
        return self._set_cached_status(table_id, TableStatus.ARCHIVED)

    async def unarchive_table(self, table_id: str) -> TableResponse:
        user_id = self.session.require_user_id()
        table = self._require_cached_table(table_id)

        if table.owner_id == user_id:
            async def operation():
                await self.supabase.table("tables")\
                    .update({"status": TableStatus.ACTIVE.value})\
                    .eq("id", table_id)\
                    .execute()

            await self.guard.run(operation)
            return self._set_cached_status(table_id, TableStatus.ACTIVE)

        # Server row first, then drop the override
        server_table = await self.fetch_table(table_id, reconcile=False)
        self.cache.replace_table(server_table)
        self.archive.remove(table_id)
        logger.info(f"Restored shared table '{server_table.title}' to server status: {server_table.status}")
        return server_table

    def is_locally_archived(self, table_id: str) -> bool:
        return self.archive.contains(table_id)

    async def rename_member(self, old_names: Iterable[str], new_name: str) -> int:
        """Replace any of old_names (case-insensitive) in cached tables' member lists. Returns tables updated."""
        old_names_lower = {name.lower() for name in old_names}
        updated_count = 0

        for table in list(self.cache.tables):
            members = [new_name if m.lower() in old_names_lower else m for m in table.members]
            if members == table.members:
                continue
            members = list(dict.fromkeys(members))

            async def operation(table_id=table.id, members=members):
                await self.supabase.table("tables")\
                    .update({"members": members})\
                    .eq("id", table_id)\
                    .execute()

            try:
                await self.guard.run(operation)
            except Exception as e:
                logger.warning(f"Failed to update member name in table '{table.title}': {e}")
                continue

            current = self.cache.find_table(table.id)
            if current is not None:
                self.cache.replace_table(current.model_copy(update={"members": members}))
            updated_count += 1
            logger.info(f"Updated members in table '{table.title}': {members}")

        return updated_count
