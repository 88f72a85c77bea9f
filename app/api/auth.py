"""
Tweetheart — Session API

Signup, login, refresh and logout.  A successful signup, login or refresh
sets the signed session cookie; every other ``/api`` route reads the caller's identity from
it through ``get_current_user_id``.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import (
    clear_session_cookie,
    get_current_user_id,
    hash_password,
    issue_token,
    set_session_cookie,
    verify_password,
)
from app.database import get_db
from app.models.user import User
from app.schemas.user import LoginRequest, SessionResponse, SignupRequest
from app.services.errors import AuthenticationError, ConflictError
from app.services.user_service import load_user

logger = structlog.get_logger("tweetheart.api.auth")

router = APIRouter()


def _normalize_email(email: str) -> str:
    return email.strip().lower()


# ──────────────────────────────────────────────────────────────────────────────
# POST /signup — Create an account and start a session
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/signup",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
async def signup(
    payload: SignupRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> SessionResponse:
    email = _normalize_email(payload.email)
    log = logger.bind(email=email)
    log.info("signup_start")

    existing = await db.execute(select(User.id).where(func.lower(User.email) == email))
    if existing.scalar_one_or_none() is not None:
        log.warning("signup_duplicate_email")
        raise ConflictError("A user with this email already exists.")

    user = User(
        email=email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        gender=payload.gender,
        birthdate=payload.birthdate,
        photos=[],
    )
    db.add(user)
    await db.flush()

    set_session_cookie(response, issue_token(user.id))
    log.info("signup_complete", user_id=str(user.id))
    return SessionResponse(id=user.id, email=user.email, first_name=user.first_name)


# ──────────────────────────────────────────────────────────────────────────────
# POST /login — Verify credentials
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/login", response_model=SessionResponse, summary="Log in")
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> SessionResponse:
    email = _normalize_email(payload.email)
    result = await db.execute(
        select(User).where(func.lower(User.email) == email, User.is_active.is_(True))
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(payload.password, user.password_hash):
        logger.warning("login_failed", email=email)
        raise AuthenticationError("Invalid email or password")

    set_session_cookie(response, issue_token(user.id))
    logger.info("login_complete", user_id=str(user.id))
    return SessionResponse(id=user.id, email=user.email, first_name=user.first_name)


# ──────────────────────────────────────────────────────────────────────────────
# POST /refresh — Extend a live session
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/refresh", response_model=SessionResponse, summary="Refresh the session")
async def refresh(
    response: Response,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> SessionResponse:
    """Re-issue the session token with a fresh expiry.  An expired or
    forged token is rejected by ``get_current_user_id`` and the caller has
    to log in again."""
    user = (
        await db.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
    ).scalar_one_or_none()
    if user is None:
        logger.warning("refresh_rejected", user_id=str(user_id))
        raise AuthenticationError("User not authenticated")

    set_session_cookie(response, issue_token(user.id))
    logger.info("session_refreshed", user_id=str(user.id))
    return SessionResponse(id=user.id, email=user.email, first_name=user.first_name)


@router.post("/logout", summary="Log out")
async def logout(response: Response) -> dict:
    clear_session_cookie(response)
    return {"success": True}


@router.get("/me", response_model=SessionResponse, summary="Current session")
async def me(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> SessionResponse:
    user = await load_user(db, user_id)
    return SessionResponse(id=user.id, email=user.email, first_name=user.first_name)
