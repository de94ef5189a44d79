"""User directory endpoints: search and profile lookup."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from guildchat.auth.dependencies import get_current_user
from guildchat.config import get_settings
from guildchat.database import get_session
from guildchat.db.models import User
from guildchat.errors import NotFound
from guildchat.users.schemas import UserResponse, UserSearchResponse
from guildchat.users.service import get_user_by_id, search_users

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/search", response_model=UserSearchResponse)
async def search_users_endpoint(
    q: str = Query(..., min_length=1, max_length=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Find other users by name or email (case-insensitive substring)."""
    users = await search_users(db, q.strip(), exclude_user_id=user.id, limit=get_settings().user_search_limit)
    return UserSearchResponse(users=[UserResponse.model_validate(u) for u in users])


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_endpoint(
    user_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    target = await get_user_by_id(db, user_id)
    if target is None:
        raise NotFound("User not found")
    return target
