"""
Tweetheart — Likes & Matches API

Swipes go through ``LikeService.record_interaction``; the remaining
endpoints read the match list and the caller's swipe history.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.services import get_like_service
from app.auth import get_current_user_id
from app.database import get_db
from app.models.like import LIKE, PASS
from app.schemas.match import (
    InteractedUser,
    InteractionCreate,
    InteractionResponse,
    MatchListItem,
    UnmatchResponse,
)

logger = structlog.get_logger("tweetheart.api.likes")

router = APIRouter()
matches_router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST / — Like or pass
# ──────────────────────────────────────────────────────────────────────────────

@router.post("", response_model=InteractionResponse, summary="Like or pass a user")
async def create_interaction(
    payload: InteractionCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> InteractionResponse:
    result = await get_like_service().record_interaction(
        db, user_id, payload.liked_id, payload.like_type
    )
    return InteractionResponse(is_match=result.is_match, is_new_match=result.is_new_match)


# ──────────────────────────────────────────────────────────────────────────────
# GET /matches — Mutual matches
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/matches", response_model=list[MatchListItem], summary="List mutual matches")
async def list_matches(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await get_like_service().list_matches(db, user_id)


@router.get("/match/{other_id}", response_model=MatchListItem, summary="Get one match")
async def get_match(
    other_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await get_like_service().get_match(db, user_id, other_id)


# ──────────────────────────────────────────────────────────────────────────────
# Swipe history
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/liked", response_model=list[InteractedUser], summary="Users I liked")
async def list_liked(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await get_like_service().list_interactions(db, user_id, outgoing=True, like_type=LIKE)


@router.get("/liked-by", response_model=list[InteractedUser], summary="Users who liked me")
async def list_liked_by(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await get_like_service().list_interactions(db, user_id, outgoing=False, like_type=LIKE)


@router.get("/passed", response_model=list[InteractedUser], summary="Users I passed")
async def list_passed(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await get_like_service().list_interactions(db, user_id, outgoing=True, like_type=PASS)


# ──────────────────────────────────────────────────────────────────────────────
# DELETE /unmatch/{other_id}
# ──────────────────────────────────────────────────────────────────────────────

@router.delete("/unmatch/{other_id}", response_model=UnmatchResponse, summary="Unmatch a user")
async def unmatch(
    other_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> UnmatchResponse:
    chat_deleted = await get_like_service().unmatch(db, user_id, other_id)
    return UnmatchResponse(chat_deleted=chat_deleted)


@matches_router.get("/{other_id}", response_model=MatchListItem, summary="Get one match")
async def get_match_alias(
    other_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await get_like_service().get_match(db, user_id, other_id)
