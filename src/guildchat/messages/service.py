"""Message creation path and channel history.

Creation is: persist the row, re-read it joined with its author (and
recipient), publish the hydrated representation to the scope's push
subscribers, return the same representation to the caller. Callers run the
access check first.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import Select, select
from sqlalchemy.orm import selectinload

from guildchat.db.filters import contains_ci
from guildchat.db.models import DmConversation, Message, utcnow
from guildchat.errors import NotFound, ValidationFailed
from guildchat.messages.schemas import MessageResponse
from guildchat.realtime.scopes import channel_scope, dm_scope
from guildchat.users.schemas import UserResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from guildchat.realtime.registry import FanoutRegistry

logger = structlog.get_logger()

MESSAGE_EVENT = "message"


def build_message_response(message: Message) -> MessageResponse:
    """Build the hydrated representation from a row with author/recipient loaded."""
    return MessageResponse(
        id=message.id,
        content=message.content,
        image_url=message.image_url,
        channel_id=message.channel_id,
        user_id=message.user_id,
        recipient_id=message.recipient_id,
        created_at=message.created_at,
        updated_at=message.updated_at,
        user=UserResponse.model_validate(message.author),
        recipient=UserResponse.model_validate(message.recipient) if message.recipient else None,
    )


def _hydrated() -> Select[tuple[Message]]:
    return select(Message).options(selectinload(Message.author), selectinload(Message.recipient))


async def get_hydrated_message(db: AsyncSession, message_id: str) -> Message:
    """Re-read a message joined with its author and recipient."""
    result = await db.execute(
        _hydrated().where(Message.id == message_id).execution_options(populate_existing=True)
    )
    message = result.scalar_one_or_none()
    if message is None:
        raise NotFound("Message not found")
    return message


def _normalize_content(content: str | None, image_url: str | None) -> str | None:
    text = content.strip() if content else None
    if not text and not image_url:
        raise ValidationFailed("A message needs text content or an image")
    return text or None


async def create_channel_message(
    db: AsyncSession,
    fanout: FanoutRegistry,
    *,
    channel_id: str,
    author_id: str,
    content: str | None,
    image_url: str | None = None,
) -> MessageResponse:
    """Persist a channel message and publish it to the channel's subscribers."""
    message = Message(
        content=_normalize_content(content, image_url),
        image_url=image_url,
        channel_id=channel_id,
        user_id=author_id,
    )
    db.add(message)
    await db.commit()

    hydrated = build_message_response(await get_hydrated_message(db, message.id))
    delivered = fanout.publish(channel_scope(channel_id), MESSAGE_EVENT, hydrated.model_dump(mode="json"))
    logger.info("message_published", message_id=message.id, channel_id=channel_id, delivered=delivered)
    return hydrated


async def create_direct_message(
    db: AsyncSession,
    fanout: FanoutRegistry,
    *,
    conversation: DmConversation,
    sender_id: str,
    recipient_id: str,
    content: str | None,
    image_url: str | None = None,
) -> MessageResponse:
    """Persist a DM, bump its conversation and publish to the pair's subscribers."""
    message = Message(
        content=_normalize_content(content, image_url),
        image_url=image_url,
        channel_id=None,
        user_id=sender_id,
        recipient_id=recipient_id,
    )
    db.add(message)
    conversation.updated_at = utcnow()
    await db.commit()

    hydrated = build_message_response(await get_hydrated_message(db, message.id))
    delivered = fanout.publish(dm_scope(sender_id, recipient_id), MESSAGE_EVENT, hydrated.model_dump(mode="json"))
    logger.info("dm_published", message_id=message.id, conversation_id=conversation.id, delivered=delivered)
    return hydrated


async def list_channel_messages(db: AsyncSession, channel_id: str, limit: int = 50) -> list[Message]:
    """Channel history, newest first, with authors joined."""
    result = await db.execute(
        _hydrated()
        .where(Message.channel_id == channel_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def search_channel_messages(db: AsyncSession, channel_id: str, query: str, limit: int = 50) -> list[Message]:
    """Case-insensitive substring search over a channel's message content."""
    result = await db.execute(
        _hydrated()
        .where(Message.channel_id == channel_id)
        .where(contains_ci(Message.content, query))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
