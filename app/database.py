"""
Tweetheart — Database engine, session factory and shared column types.

Production connects to Cloud SQL through ``cloud-sql-python-connector`` with
IAM auth when ``CLOUD_SQL_USE_UNIX_SOCKET`` and
``CLOUD_SQL_INSTANCE_CONNECTION`` are both set.  Otherwise ``DATABASE_URL``
is used as-is (``postgresql+asyncpg://`` for development,
``sqlite+aiosqlite://`` in the test-suite).

Models use ``JSONType`` and ``sqlalchemy.Uuid`` so the same metadata creates
tables on both PostgreSQL and SQLite.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, AsyncGenerator

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by every Tweetheart model."""


JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ------------------------------------------------------------------ #
# Engine
# ------------------------------------------------------------------ #

POOL_SIZE = 10
POOL_MAX_OVERFLOW = 5


def _engine_kwargs(url: str, settings: Settings) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"echo": settings.LOG_LEVEL == "DEBUG"}
    if url.startswith("sqlite"):
        # SQLite pools do not take sizing arguments.
        return kwargs
    kwargs.update(
        pool_size=POOL_SIZE,
        max_overflow=POOL_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
    )
    return kwargs


def _uses_cloud_sql(settings: Settings) -> bool:
    return bool(settings.CLOUD_SQL_USE_UNIX_SOCKET and settings.CLOUD_SQL_INSTANCE_CONNECTION)


def _cloud_sql_creator(settings: Settings):
    from google.cloud.sql.connector import Connector

    connector = Connector()

    async def _connect():
        return await connector.connect_async(
            settings.CLOUD_SQL_INSTANCE_CONNECTION,
            "asyncpg",
            user=settings.DB_USER,
            password=settings.DB_PASSWORD,
            db=settings.DB_NAME,
            enable_iam_auth=True,
        )

    return _connect


def build_engine(settings: Settings | None = None) -> AsyncEngine:
    settings = settings or get_settings()

    if _uses_cloud_sql(settings):
        url = "postgresql+asyncpg://"
        engine = create_async_engine(
            url,
            async_creator=_cloud_sql_creator(settings),
            **_engine_kwargs(url, settings),
        )
        logger.info("Database engine via Cloud SQL connector (%s)", settings.CLOUD_SQL_INSTANCE_CONNECTION)
        return engine

    url = settings.DATABASE_URL
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    engine = create_async_engine(url, **_engine_kwargs(url, settings))
    logger.info("Database engine from DATABASE_URL (%s)", engine.url.get_backend_name())
    return engine


engine = build_engine()

async_session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ------------------------------------------------------------------ #
# FastAPI dependency
# ------------------------------------------------------------------ #

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request: committed if the handler returns, rolled
    back if it raises.  Services that push real-time events commit
    explicitly first so nothing is emitted for uncommitted rows."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
