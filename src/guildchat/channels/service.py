"""Channel creation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from guildchat.db.models import CHANNEL_TYPES, Channel
from guildchat.errors import ValidationFailed

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def create_channel(
    db: AsyncSession,
    server_id: str,
    name: str,
    channel_type: str = "text",
    description: str | None = None,
) -> Channel:
    """Add a channel to a server. Commits.

    Raises:
        ValidationFailed: Unknown channel type or blank name.
    """
    if channel_type not in CHANNEL_TYPES:
        raise ValidationFailed(f"Channel type must be one of: {', '.join(CHANNEL_TYPES)}")
    if not name.strip():
        raise ValidationFailed("Channel name must not be blank")

    channel = Channel(
        name=name.strip(),
        type=channel_type,
        description=description or None,
        server_id=server_id,
    )
    db.add(channel)
    await db.commit()
    logger.info("channel_created", channel_id=channel.id, server_id=server_id, type=channel_type)
    return channel
