from pydantic import BaseModel
from typing import Optional
from tables_sync.core.schemas import Timestamp


class NudgeResponse(BaseModel):
    id: str
    table_id: str
    author_name: str
    message: Optional[str] = None
    created_at: Timestamp

    class Config:
        from_attributes = True
