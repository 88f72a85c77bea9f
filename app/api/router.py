"""
Tweetheart — Main API Router

Aggregates all sub-routers so that ``app.main`` can mount the entire API
surface under ``/api`` with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import auth, chats, likes, notifications, photos, users

router = APIRouter()

router.include_router(auth.router, tags=["Session"])
router.include_router(users.router, tags=["Users"])
router.include_router(photos.router, prefix="/photos", tags=["Photos"])
router.include_router(likes.router, prefix="/likes", tags=["Likes"])
router.include_router(likes.matches_router, prefix="/matches", tags=["Likes"])
router.include_router(chats.router, prefix="/chats", tags=["Chats"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
