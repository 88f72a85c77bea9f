"""
Tweetheart — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from app.models.user import User
from app.models.chat import Chat, Message
from app.models.like import Like
from app.models.notification import Notification

__all__ = [
    "User",
    "Chat",
    "Message",
    "Like",
    "Notification",
]
