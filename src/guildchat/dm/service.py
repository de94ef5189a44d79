"""Direct-message conversation resolver and DM history.

Each unordered user pair has exactly one ``DmConversation`` row, stored in
canonical order (smaller id first). The unique constraint on the stored pair
is what makes concurrent first messages from both sides converge on a
single row: the loser of the insert race rolls back and re-reads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from guildchat.db.models import DmConversation, Message, User
from guildchat.errors import ValidationFailed
from guildchat.realtime.scopes import canonical_pair

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


@dataclass
class ConversationSummary:
    conversation: DmConversation
    other_user: User
    last_message: Message | None


def _pair_filter(user_a: str, user_b: str):  # noqa: ANN202
    return or_(
        and_(DmConversation.user1_id == user_a, DmConversation.user2_id == user_b),
        and_(DmConversation.user1_id == user_b, DmConversation.user2_id == user_a),
    )


async def get_conversation(db: AsyncSession, user_a: str, user_b: str) -> DmConversation | None:
    """Find the conversation for a pair, whichever way round it was stored."""
    result = await db.execute(select(DmConversation).where(_pair_filter(user_a, user_b)).limit(1))
    return result.scalar_one_or_none()


async def resolve_or_create(db: AsyncSession, user_a: str, user_b: str) -> DmConversation:
    """
    Return the one conversation between two users, creating it if needed.

    Commits on creation. If a concurrent request created the row first,
    the unique constraint rejects this insert; the session is rolled back
    and the winner's row is returned.

    Raises:
        ValidationFailed: If both ids are the same user.
    """
    if user_a == user_b:
        raise ValidationFailed("You cannot start a conversation with yourself")

    existing = await get_conversation(db, user_a, user_b)
    if existing is not None:
        return existing

    user1_id, user2_id = canonical_pair(user_a, user_b)
    conversation = DmConversation(user1_id=user1_id, user2_id=user2_id)
    db.add(conversation)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await get_conversation(db, user_a, user_b)
        if existing is None:
            raise
        return existing

    logger.info("dm_conversation_created", conversation_id=conversation.id, user1_id=user1_id, user2_id=user2_id)
    return conversation


async def fetch_messages(db: AsyncSession, user_a: str, user_b: str, limit: int = 50) -> list[Message]:
    """DM messages between the pair in either direction, newest first."""
    result = await db.execute(
        select(Message)
        .options(selectinload(Message.author), selectinload(Message.recipient))
        .where(Message.channel_id.is_(None))
        .where(
            or_(
                and_(Message.user_id == user_a, Message.recipient_id == user_b),
                and_(Message.user_id == user_b, Message.recipient_id == user_a),
            )
        )
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_conversations(db: AsyncSession, user_id: str) -> list[ConversationSummary]:
    """Conversations the user takes part in, most recently active first."""
    result = await db.execute(
        select(DmConversation)
        .options(selectinload(DmConversation.user1), selectinload(DmConversation.user2))
        .where(or_(DmConversation.user1_id == user_id, DmConversation.user2_id == user_id))
        .order_by(DmConversation.updated_at.desc())
    )

    summaries: list[ConversationSummary] = []
    for conversation in result.scalars().all():
        other = conversation.user2 if conversation.user1_id == user_id else conversation.user1
        latest = await fetch_messages(db, conversation.user1_id, conversation.user2_id, limit=1)
        summaries.append(
            ConversationSummary(
                conversation=conversation,
                other_user=other,
                last_message=latest[0] if latest else None,
            )
        )
    return summaries
