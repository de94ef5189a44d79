"""Server endpoints: servers, members and invite management."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from guildchat.auth.dependencies import get_current_user
from guildchat.database import get_session
from guildchat.db.models import User
from guildchat.errors import NotFound
from guildchat.invites.schemas import CreateInviteRequest, InviteResponse
from guildchat.invites.service import create_invite, list_invites
from guildchat.permissions import require_member
from guildchat.servers.schemas import (
    CreateServerRequest,
    ServerMemberResponse,
    ServerResponse,
    ServerWithChannelsResponse,
)
from guildchat.servers.service import (
    create_server,
    get_server_with_channels,
    list_members,
    list_servers_for_user,
)
from guildchat.users.schemas import UserResponse

router = APIRouter(prefix="/api/servers", tags=["Servers"])


async def _load_server(db: AsyncSession, server_id: str) -> ServerWithChannelsResponse:
    server = await get_server_with_channels(db, server_id)
    if server is None:
        raise NotFound("Server not found")
    return ServerWithChannelsResponse.model_validate(server)


@router.post("", response_model=ServerWithChannelsResponse, status_code=201)
async def create_server_endpoint(
    body: CreateServerRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create a server. The caller becomes its owner; a #general channel is added."""
    server = await create_server(db, user.id, body.name, body.image_url)
    return await _load_server(db, server.id)


@router.get("", response_model=list[ServerResponse])
async def list_servers_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Servers the caller is a member of."""
    return await list_servers_for_user(db, user.id)


@router.get("/{server_id}", response_model=ServerWithChannelsResponse)
async def get_server_endpoint(
    server_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Server detail with its channels (members only)."""
    await require_member(db, user.id, server_id)
    return await _load_server(db, server_id)


@router.get("/{server_id}/members", response_model=list[ServerMemberResponse])
async def list_members_endpoint(
    server_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Members of a server with profiles and roles (members only)."""
    await require_member(db, user.id, server_id)
    return [
        ServerMemberResponse(
            user=UserResponse.model_validate(member_user),
            role=membership.role,
            is_owner=membership.role == "owner",
            joined_at=membership.joined_at,
        )
        for membership, member_user in await list_members(db, server_id)
    ]


@router.post("/{server_id}/invites", response_model=InviteResponse, status_code=201)
async def create_invite_endpoint(
    server_id: str,
    body: CreateInviteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create an invite link for a server (members only)."""
    await require_member(db, user.id, server_id)
    return await create_invite(db, server_id, user.id, body.max_uses, body.expires_at)


@router.get("/{server_id}/invites", response_model=list[InviteResponse])
async def list_invites_endpoint(
    server_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """A server's invites, newest first (members only)."""
    await require_member(db, user.id, server_id)
    return await list_invites(db, server_id)
