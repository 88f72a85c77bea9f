from pydantic import BaseModel, Field
from uuid import UUID
from datetime import date, datetime
from typing import Optional


class SignupRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    gender: Optional[str] = None
    birthdate: Optional[date] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    id: UUID
    email: str
    first_name: str


class PhotoItem(BaseModel):
    key: str
    order: int
    url: Optional[str] = None


class ProfileResponse(BaseModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    gender: Optional[str]
    birthdate: Optional[date]
    age: Optional[int]
    bio: Optional[str]
    photos: list[PhotoItem] = []
    has_location: bool = False
    created_at: datetime


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    gender: Optional[str] = None
    birthdate: Optional[date] = None
    bio: Optional[str] = Field(None, max_length=1000)


class PublicProfile(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    gender: Optional[str]
    birthdate: Optional[date]
    age: Optional[int]
    bio: Optional[str]
    photos: list[str] = []


class LocationUpdate(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class FeedUser(BaseModel):
    id: UUID
    name: str
    age: Optional[int]
    bio: Optional[str]
    gender: Optional[str]
    photos: list[str] = []
    distance: Optional[float] = None


class FeedPagination(BaseModel):
    current_page: int
    has_more: bool
    total_users: int
    next_cursor: Optional[str] = None


class FeedResponse(BaseModel):
    users: list[FeedUser]
    pagination: FeedPagination


class BasicUser(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    gender: Optional[str]
    birthdate: Optional[date]
    photos: list[str] = []


class LocationStatus(BaseModel):
    has_location: bool
