"""Direct-message endpoints, always scoped to the caller and one other user."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from guildchat.auth.dependencies import get_current_user
from guildchat.config import get_settings
from guildchat.database import get_session
from guildchat.db.models import User
from guildchat.dependencies import get_fanout
from guildchat.dm.schemas import ConversationResponse
from guildchat.dm.service import fetch_messages, list_conversations, resolve_or_create
from guildchat.errors import NotFound, ValidationFailed
from guildchat.messages.schemas import MessageResponse
from guildchat.messages.service import build_message_response, create_direct_message
from guildchat.realtime.registry import FanoutRegistry
from guildchat.realtime.scopes import dm_scope
from guildchat.realtime.stream import stream_response
from guildchat.uploads import save_image
from guildchat.users.schemas import UserResponse
from guildchat.users.service import get_user_by_id

router = APIRouter(prefix="/api/dm", tags=["Direct Messages"])


async def _other_user(db: AsyncSession, caller_id: str, other_id: str) -> User:
    if caller_id == other_id:
        raise ValidationFailed("You cannot message yourself")
    other = await get_user_by_id(db, other_id)
    if other is None:
        raise NotFound("User not found")
    return other


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's conversations with the other participant and last message."""
    return [
        ConversationResponse(
            id=s.conversation.id,
            other_user=UserResponse.model_validate(s.other_user),
            last_message=build_message_response(s.last_message) if s.last_message else None,
            created_at=s.conversation.created_at,
            updated_at=s.conversation.updated_at,
        )
        for s in await list_conversations(db, user.id)
    ]


@router.post("/{user_id}/conversation", response_model=ConversationResponse)
async def start_conversation_endpoint(
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Open (or reuse) the conversation with another user."""
    caller_id = user.id
    # A lost insert race rolls back and expires loaded rows
    other = UserResponse.model_validate(await _other_user(db, caller_id, user_id))
    conversation = await resolve_or_create(db, caller_id, user_id)
    latest = await fetch_messages(db, caller_id, user_id, limit=1)
    return ConversationResponse(
        id=conversation.id,
        other_user=other,
        last_message=build_message_response(latest[0]) if latest else None,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


@router.get("/{user_id}/messages", response_model=list[MessageResponse])
async def list_dm_messages_endpoint(
    user_id: str,
    limit: int | None = Query(None, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """DM history with another user, newest first."""
    await _other_user(db, user.id, user_id)
    settings = get_settings()
    page = min(limit or settings.message_page_size, settings.message_page_max)
    return [build_message_response(m) for m in await fetch_messages(db, user.id, user_id, page)]


@router.post("/{user_id}/messages", response_model=MessageResponse, status_code=201)
async def post_dm_endpoint(
    user_id: str,
    content: str | None = Form(None),
    image: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    fanout: FanoutRegistry = Depends(get_fanout),
):
    """Send a DM, creating the conversation on first contact, and push it to both sides."""
    caller_id = user.id
    await _other_user(db, caller_id, user_id)
    image_url = await save_image(image) if image is not None and image.filename else None
    conversation = await resolve_or_create(db, caller_id, user_id)
    return await create_direct_message(
        db,
        fanout,
        conversation=conversation,
        sender_id=caller_id,
        recipient_id=user_id,
        content=content,
        image_url=image_url,
    )


@router.get("/{user_id}/events")
async def dm_events_endpoint(
    user_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    fanout: FanoutRegistry = Depends(get_fanout),
):
    """Server-Sent Events stream of new DMs between the caller and ``user_id``."""
    caller_id = user.id
    await _other_user(db, caller_id, user_id)
    # The stream outlives the request; give the pooled connection back now
    await db.close()
    return stream_response(request, fanout, dm_scope(caller_id, user_id), caller_id)
