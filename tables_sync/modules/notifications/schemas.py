import json
from pydantic import BaseModel, field_validator
from typing import Dict, Optional
from tables_sync.core.schemas import Timestamp

TABLE_DELETED = "table_deleted"
SHARE_CREATED = "share_created"
MEMBER_ADDED = "member_added"


class NotificationEnvelope(BaseModel):
    id: str
    user_id: str
    event_type: str
    payload: Dict[str, str] = {}
    processed: bool = False
    created_at: Optional[Timestamp] = None

    @field_validator("payload", mode="before")
    @classmethod
    def decode_payload(cls, value):
        # The payload column may hold a JSON string rather than a json object
        if value is None:
            return {}
        if isinstance(value, str):
            value = json.loads(value) if value.strip() else {}
        if not isinstance(value, dict):
            raise ValueError(f"payload must be a JSON object, got {type(value).__name__}")
        return {str(k): str(v) for k, v in value.items()}

    class Config:
        from_attributes = True
