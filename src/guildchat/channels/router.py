"""Channel endpoints: creation, history, search, posting and the push stream."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from guildchat.auth.dependencies import get_current_user
from guildchat.channels.schemas import ChannelResponse, CreateChannelRequest
from guildchat.channels.service import create_channel
from guildchat.config import get_settings
from guildchat.database import get_session
from guildchat.db.models import User
from guildchat.dependencies import get_fanout
from guildchat.messages.schemas import MessageResponse
from guildchat.messages.service import (
    build_message_response,
    create_channel_message,
    list_channel_messages,
    search_channel_messages,
)
from guildchat.permissions import require_channel_access, require_member
from guildchat.realtime.registry import FanoutRegistry
from guildchat.realtime.scopes import channel_scope
from guildchat.realtime.stream import stream_response
from guildchat.uploads import save_image

router = APIRouter(prefix="/api/channels", tags=["Channels"])


def _page_limit(limit: int | None) -> int:
    settings = get_settings()
    return min(limit or settings.message_page_size, settings.message_page_max)


@router.post("", response_model=ChannelResponse, status_code=201)
async def create_channel_endpoint(
    body: CreateChannelRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create a text or voice channel in a server (members only)."""
    await require_member(db, user.id, body.server_id)
    return await create_channel(db, body.server_id, body.name, body.type, body.description)


@router.get("/{channel_id}/messages", response_model=list[MessageResponse])
async def list_messages_endpoint(
    channel_id: str,
    limit: int | None = Query(None, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Channel history, newest first, with authors joined."""
    await require_channel_access(db, user.id, channel_id)
    messages = await list_channel_messages(db, channel_id, _page_limit(limit))
    return [build_message_response(m) for m in messages]


@router.get("/{channel_id}/search", response_model=list[MessageResponse])
async def search_messages_endpoint(
    channel_id: str,
    q: str = Query(..., min_length=1, max_length=200),
    limit: int | None = Query(None, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Case-insensitive content search within a channel."""
    await require_channel_access(db, user.id, channel_id)
    messages = await search_channel_messages(db, channel_id, q, _page_limit(limit))
    return [build_message_response(m) for m in messages]


@router.post("/{channel_id}/messages", response_model=MessageResponse, status_code=201)
async def post_message_endpoint(
    channel_id: str,
    content: str | None = Form(None),
    image: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    fanout: FanoutRegistry = Depends(get_fanout),
):
    """Post a message (text and/or image) and push it to open channel streams."""
    user_id = user.id
    await require_channel_access(db, user_id, channel_id)
    image_url = await save_image(image) if image is not None and image.filename else None
    return await create_channel_message(
        db,
        fanout,
        channel_id=channel_id,
        author_id=user_id,
        content=content,
        image_url=image_url,
    )


@router.get("/{channel_id}/events")
async def channel_events_endpoint(
    channel_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    fanout: FanoutRegistry = Depends(get_fanout),
):
    """Server-Sent Events stream of new messages in a channel."""
    user_id = user.id
    await require_channel_access(db, user_id, channel_id)
    # The stream outlives the request; give the pooled connection back now
    await db.close()
    return stream_response(request, fanout, channel_scope(channel_id), user_id)
