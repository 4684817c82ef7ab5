from pydantic import BaseModel, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum
from tables_sync.core.schemas import Timestamp


class TableStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    DISCUSSED = "discussed"


def _unique_members(members: List[str]) -> List[str]:
    # Order preserved, first occurrence wins
    return list(dict.fromkeys(members))


class TableCreate(BaseModel):
    title: str
    context: Optional[str] = None
    members: List[str] = []

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Table title is required")
        return value

    @field_validator("members")
    @classmethod
    def dedupe_members(cls, value: List[str]) -> List[str]:
        return _unique_members(value)


class TableUpdate(BaseModel):
    """Partial update: only fields explicitly set are written."""
    title: Optional[str] = None
    context: Optional[str] = None
    status: Optional[TableStatus] = None
    next_reminder_date: Optional[datetime] = None

    class Config:
        use_enum_values = True


class TableResponse(BaseModel):
    id: str
    title: str
    context: Optional[str] = None
    status: TableStatus = TableStatus.ACTIVE
    members: List[str] = []
    next_reminder_date: Optional[Timestamp] = None
    owner_id: str
    created_at: Timestamp
    updated_at: Timestamp

    @field_validator("members", mode="before")
    @classmethod
    def dedupe_members(cls, value):
        return _unique_members(value or [])

    class Config:
        from_attributes = True
        use_enum_values = True
