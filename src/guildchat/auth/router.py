"""Identity endpoint for the signed-in user."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from guildchat.auth.dependencies import get_current_user
from guildchat.db.models import User
from guildchat.users.schemas import UserResponse

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.get("/user", response_model=UserResponse)
async def current_user_endpoint(user: User = Depends(get_current_user)):
    """The caller's profile, provisioned from token claims on first sight."""
    return user
