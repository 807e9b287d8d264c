"""schemas/notifications.py — In-app notification listing."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    message: str
    link: str | None = None
    priority: str
    is_read: bool
    created_at: datetime | None = None
