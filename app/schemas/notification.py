from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from typing import Any, Literal, Optional


class NotificationOut(BaseModel):
    id: int
    user_id: UUID
    type: str
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    is_read: bool
    is_dismissed: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationCreate(BaseModel):
    user_id: UUID
    type: Literal["match", "like", "message", "system"]
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=2000)
    data: Optional[dict[str, Any]] = None


class UnreadCount(BaseModel):
    unread_count: int
