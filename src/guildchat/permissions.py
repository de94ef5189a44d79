"""Access control checks.

Predicates are pure reads against the membership and channel tables; they
never mutate state. The ``require_*`` helpers wrap them for request
handlers and raise ``Forbidden`` on denial. Direct messages need no check
beyond identity: handlers always scope them to the caller's own pair.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from guildchat.db.models import Channel, ServerMember
from guildchat.errors import Forbidden

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def get_membership(db: AsyncSession, user_id: str, server_id: str) -> ServerMember | None:
    result = await db.execute(
        select(ServerMember).where(
            ServerMember.user_id == user_id,
            ServerMember.server_id == server_id,
        )
    )
    return result.scalar_one_or_none()


async def is_member(db: AsyncSession, user_id: str, server_id: str) -> bool:
    """True iff a membership row exists for the pair."""
    return await get_membership(db, user_id, server_id) is not None


async def can_read_channel(db: AsyncSession, user_id: str, channel_id: str) -> bool:
    """True iff the channel's server has a membership row for ``user_id``."""
    result = await db.execute(
        select(Channel.id)
        .join(ServerMember, ServerMember.server_id == Channel.server_id)
        .where(Channel.id == channel_id, ServerMember.user_id == user_id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def require_member(db: AsyncSession, user_id: str, server_id: str) -> None:
    if not await is_member(db, user_id, server_id):
        raise Forbidden()


async def require_channel_access(db: AsyncSession, user_id: str, channel_id: str) -> None:
    # Unknown channels are denied the same way, so ids are not probeable.
    if not await can_read_channel(db, user_id, channel_id):
        raise Forbidden()
