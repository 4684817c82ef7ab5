from pydantic import BaseModel
from typing import Optional
from enum import Enum


class InterestKind(str, Enum):
    OWNED_TABLES = "owned_tables"
    TABLE_SHARES = "table_shares"
    CARDS = "cards"
    COMMENTS = "comments"
    NOTIFICATIONS = "notifications"


# kind -> (channel prefix, store table, filter column, event)
_INTERESTS = {
    InterestKind.OWNED_TABLES: ("tables-changes", "tables", "owner_id", "*"),
    InterestKind.TABLE_SHARES: ("table-shares-changes", "table_shares", "shared_with_user_id", "*"),
    InterestKind.CARDS: ("cards", "cards", "table_id", "*"),
    InterestKind.COMMENTS: ("comments", "comments", "card_id", "*"),
    InterestKind.NOTIFICATIONS: ("user-notifications", "realtime_notifications", "user_id", "INSERT"),
}


class Interest(BaseModel):
    """One logical realtime interest; at most one live channel exists per key."""
    kind: InterestKind
    entity_id: str

    class Config:
        frozen = True

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.entity_id}"

    @property
    def channel_name(self) -> str:
        return f"{_INTERESTS[self.kind][0]}-{self.entity_id}"

    @property
    def table(self) -> str:
        return _INTERESTS[self.kind][1]

    @property
    def filter(self) -> Optional[str]:
        return f"{_INTERESTS[self.kind][2]}=eq.{self.entity_id}"

    @property
    def event(self) -> str:
        return _INTERESTS[self.kind][3]

    @classmethod
    def owned_tables(cls, user_id: str) -> "Interest":
        return cls(kind=InterestKind.OWNED_TABLES, entity_id=user_id)

    @classmethod
    def table_shares(cls, user_id: str) -> "Interest":
        return cls(kind=InterestKind.TABLE_SHARES, entity_id=user_id)

    @classmethod
    def cards(cls, table_id: str) -> "Interest":
        return cls(kind=InterestKind.CARDS, entity_id=table_id)

    @classmethod
    def comments(cls, card_id: str) -> "Interest":
        return cls(kind=InterestKind.COMMENTS, entity_id=card_id)

    @classmethod
    def notifications(cls, user_id: str) -> "Interest":
        return cls(kind=InterestKind.NOTIFICATIONS, entity_id=user_id)
