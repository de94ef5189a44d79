"""Invite endpoints: public preview and redemption."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from guildchat.auth.dependencies import get_current_user
from guildchat.database import get_session
from guildchat.db.models import User
from guildchat.errors import NotFound
from guildchat.invites.schemas import InvitePreviewResponse, InviteServerPreview
from guildchat.invites.service import get_invite_by_code, is_exhausted, is_expired, redeem_invite
from guildchat.servers.schemas import ServerWithChannelsResponse
from guildchat.servers.service import count_members, get_server_with_channels

router = APIRouter(prefix="/api/invites", tags=["Invites"])


@router.get("/{code}", response_model=InvitePreviewResponse)
async def preview_invite_endpoint(
    code: str,
    db: AsyncSession = Depends(get_session),
):
    """Invite and server preview. No authentication required."""
    invite = await get_invite_by_code(db, code)
    if invite is None:
        raise NotFound("Invite not found")
    return InvitePreviewResponse(
        code=invite.code,
        server=InviteServerPreview(
            id=invite.server.id,
            name=invite.server.name,
            image_url=invite.server.image_url,
            member_count=await count_members(db, invite.server_id),
        ),
        max_uses=invite.max_uses,
        used_count=invite.used_count,
        expires_at=invite.expires_at,
        is_expired=is_expired(invite),
        is_exhausted=is_exhausted(invite),
    )


@router.post("/{code}/join", response_model=ServerWithChannelsResponse)
async def join_invite_endpoint(
    code: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Redeem an invite and return the joined server with its channels."""
    server_id = await redeem_invite(db, code, user.id)
    server = await get_server_with_channels(db, server_id)
    return ServerWithChannelsResponse.model_validate(server)
