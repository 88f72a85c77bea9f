from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Literal, Optional


class InteractionCreate(BaseModel):
    liked_id: UUID
    like_type: Literal["like", "pass"] = "like"


class InteractionResponse(BaseModel):
    success: bool = True
    is_match: bool
    is_new_match: bool = False


class MatchListItem(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    bio: Optional[str]
    age: Optional[int]
    gender: Optional[str]
    photos: list[str] = []
    matched_at: datetime
    chat_id: Optional[str] = None
    has_chat: bool
    preparation_chat_id: str


class InteractedUser(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    bio: Optional[str]
    like_type: str
    created_at: datetime


class UnmatchResponse(BaseModel):
    success: bool = True
    chat_deleted: bool
