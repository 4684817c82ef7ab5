from pydantic import BaseModel, EmailStr
from typing import Optional, List
from tables_sync.core.schemas import Timestamp


class ShareRequest(BaseModel):
    email: EmailStr
    permission: str = "write"


class TableShareResponse(BaseModel):
    id: str
    table_id: str
    shared_with_user_id: str
    permission: str
    created_at: Timestamp

    class Config:
        from_attributes = True


class UserLookupResult(BaseModel):
    """Row returned by the find_user_by_email RPC"""
    user_id: str
    user_email: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def member_name(self) -> Optional[str]:
        return self.display_name or self.user_email


class UserSearchResult(BaseModel):
    id: str
    email: str = ""
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def full_name(self) -> Optional[str]:
        if self.first_name:
            if self.last_name:
                return f"{self.first_name} {self.last_name}"
            return self.first_name
        return self.display_name

    @property
    def display_text(self) -> str:
        return self.full_name or self.display_name or self.email


class InviteResult(BaseModel):
    shared: List[str] = []
    failed: List[str] = []

    @property
    def all_succeeded(self) -> bool:
        return not self.failed
