from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from typing import Optional


class ChatCreate(BaseModel):
    match_id: UUID


class MessageCreate(BaseModel):
    message: str = Field(min_length=1, max_length=5000)


class OtherUser(BaseModel):
    id: UUID
    name: str
    age: Optional[int]
    gender: Optional[str]
    bio: Optional[str]
    photos: list[str] = []


class ChatSummary(BaseModel):
    id: str
    other_user: OtherUser
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    unread_count: int = 0
    created_at: datetime


class MessageOut(BaseModel):
    id: int
    chat_id: str
    sender_id: UUID
    content: str
    is_read: bool
    is_own: bool
    created_at: datetime


class SendMessageResponse(BaseModel):
    chat_id: str
    is_new_chat: bool
    message: MessageOut


class MarkReadResponse(BaseModel):
    chat_id: str
    message_ids: list[int]
