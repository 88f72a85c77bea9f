"""Shared pytest fixtures for Tweetheart tests."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-with-enough-length-for-hs256")
os.environ.setdefault("INTERNAL_API_KEY", "internal-test-key")

import uuid
from datetime import date
from unittest.mock import MagicMock

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (registers every table on Base.metadata)
from app.auth import issue_token
from app.database import Base
from app.models.user import User
from app.realtime import EventPublisher
from app.services.chat_service import ChatService
from app.services.feed_service import FeedService
from app.services.like_service import LikeService
from app.services.notification_service import NotificationService
from app.services.photo_service import PhotoService


class RecordingPublisher(EventPublisher):
    """Collects emits instead of sending them."""

    def __init__(self):
        super().__init__(server=MagicMock())
        self.emitted = []

    async def _emit(self, event, payload, room):
        self.emitted.append((room, event, payload))

    def to_room(self, room, event=None):
        return [
            payload for r, e, payload in self.emitted
            if r == room and (event is None or e == event)
        ]

    def named(self, event):
        return [(room, payload) for room, e, payload in self.emitted if e == event]


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def events():
    return RecordingPublisher()


@pytest.fixture
def storage():
    fake = MagicMock()
    fake.generate_signed_url.side_effect = lambda key, expiry=None: f"https://signed.example/{key}"
    fake.upload_file.side_effect = lambda path, data, content_type="image/jpeg": path
    return fake


@pytest.fixture
def photo_service(storage):
    return PhotoService(storage=storage)


@pytest.fixture
def notification_service(events):
    return NotificationService(events)


@pytest.fixture
def like_service(events, notification_service, photo_service):
    return LikeService(events, notification_service, photo_service)


@pytest.fixture
def chat_service(events, notification_service, photo_service):
    return ChatService(events, notification_service, photo_service)


@pytest.fixture
def feed_service(photo_service):
    return FeedService(photo_service)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = {
            "email": f"user{n}@example.com",
            "password_hash": "not-a-real-hash",
            "first_name": f"User{n}",
            "last_name": "Test",
            "gender": "female" if n % 2 else "male",
            "birthdate": date(1995, 6, 15),
            "bio": f"Bio of user {n}",
            "photos": [],
            "latitude": 40.7128,
            "longitude": -74.0060,
        }
        fields.update(overrides)
        user = User(**fields)
        db.add(user)
        await db.commit()
        return user

    return _make


@pytest.fixture
def matched_pair(db, make_user, like_service):
    async def _pair():
        a = await make_user(first_name="Alice")
        b = await make_user(first_name="Bob")
        await like_service.record_interaction(db, a.id, b.id, "like")
        await like_service.record_interaction(db, b.id, a.id, "like")
        return a, b

    return _pair


def auth_headers(user_id: uuid.UUID) -> dict:
    return {"Authorization": f"Bearer {issue_token(user_id)}"}


@pytest.fixture
async def client(session_factory, events, storage):
    from app.api import services
    from app.database import get_db
    from app.main import app

    services.configure(events=events, storage=storage)

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()
    services.configure()
