from pydantic import BaseModel
from typing import Dict
from datetime import datetime

TABLE_REMINDER = "table_reminder"


class ReminderRequest(BaseModel):
    identifier: str
    table_id: str
    title: str
    body: str
    fire_at: datetime
    user_info: Dict[str, str]
