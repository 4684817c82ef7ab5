"""
In-memory mirror of the signed-in user's Tables and Reflections.

All mutations happen on the event loop that owns the coordinator, between
awaits, so two tasks never write the lists at the same time. Consistency is
"last fetch wins".
"""
from typing import List, Optional

from tables_sync.modules.reflections.schemas import ReflectionResponse
from tables_sync.modules.tables.schemas import TableResponse


class ClientCache:
    def __init__(self):
        self.tables: List[TableResponse] = []
        self.reflections: List[ReflectionResponse] = []

    def clear(self):
        self.tables = []
        self.reflections = []

    # Tables

    def find_table(self, table_id: str) -> Optional[TableResponse]:
        return next((t for t in self.tables if t.id == table_id), None)

    def replace_table(self, table: TableResponse) -> bool:
        """Overwrite the cached entry with the same id. Returns False when absent."""
        for index, existing in enumerate(self.tables):
            if existing.id == table.id:
                self.tables[index] = table
                return True
        return False

    def upsert_table(self, table: TableResponse) -> None:
        if not self.replace_table(table):
            self.tables.append(table)
            self.tables.sort(key=lambda t: t.updated_at, reverse=True)

    def remove_table(self, table_id: str) -> None:
        self.tables = [t for t in self.tables if t.id != table_id]

    # Reflections

    def find_reflection(self, reflection_id: str) -> Optional[ReflectionResponse]:
        return next((r for r in self.reflections if r.id == reflection_id), None)

    def remove_reflection(self, reflection_id: str) -> None:
        self.reflections = [r for r in self.reflections if r.id != reflection_id]
