"""
Tweetheart — Session tokens and password hashing.

The acting user is always derived from a server-signed JWT carried in an
HttpOnly cookie (or an ``Authorization: Bearer`` header for non-browser
clients).  Client-supplied user ids are never trusted for authorization.
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Optional

import bcrypt
import jwt
import structlog
from fastapi import Request, Response

from app.config import get_settings
from app.services.errors import AuthenticationError

logger = structlog.get_logger("tweetheart.auth")


def hash_password(raw: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(raw.encode("utf-8"), salt).decode("utf-8")


def verify_password(raw: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(raw.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def issue_token(user_id: uuid.UUID, ttl_seconds: Optional[int] = None) -> str:
    settings = get_settings()
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + (ttl_seconds or settings.SESSION_TTL_SECONDS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> uuid.UUID:
    """Verify ``token`` and return the user id it was issued for."""
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
        return uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError) as exc:
        raise AuthenticationError("Invalid or expired session") from exc


def token_from_cookie_header(cookie_header: str) -> Optional[str]:
    """Pull the session token out of a raw ``Cookie`` header."""
    name = get_settings().SESSION_COOKIE_NAME
    for part in cookie_header.split(";"):
        key, _, value = part.strip().partition("=")
        if key == name and value:
            return value
    return None


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(get_settings().SESSION_COOKIE_NAME)


async def get_current_user_id(request: Request) -> uuid.UUID:
    """FastAPI dependency returning the verified id of the calling user."""
    token = request.cookies.get(get_settings().SESSION_COOKIE_NAME)
    if not token:
        auth_header = request.headers.get("authorization", "")
        if auth_header.lower().startswith("bearer "):
            token = auth_header[7:].strip()
    if not token:
        raise AuthenticationError("User not authenticated")
    return decode_token(token)
