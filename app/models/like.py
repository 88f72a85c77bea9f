"""
Tweetheart — Like (swipe interaction) model.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow

LIKE = "like"
PASS = "pass"
LIKE_TYPES = (LIKE, PASS)


class Like(Base):
    __tablename__ = "users_likes"
    __table_args__ = (
        UniqueConstraint("liker_id", "liked_id", name="uq_like_pair"),
        Index("ix_users_likes_liked_type", "liked_id", "like_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    liker_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    liked_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    like_type: Mapped[str] = mapped_column(
        String, nullable=False, comment="like / pass"
    )
    is_mutual: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    chat_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("chats.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<Like {self.liker_id} -> {self.liked_id} "
            f"type={self.like_type!r} mutual={self.is_mutual}>"
        )
