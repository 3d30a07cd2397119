from datetime import datetime
from typing import Any, Dict
from pydantic import BaseModel, ConfigDict

class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    type: str
    title: str
    body: str
    data: Dict[str, Any] = {}
    is_read: bool
    sent_at: datetime | None = None
    read_at: datetime | None = None

class UnreadCount(BaseModel):
    unread: int
