"""Server (guild) business logic.

Rules:
- The creator becomes the owner and its first member (role ``owner``)
- Every server is created together with a ``general`` text channel
- Server, owner membership and default channel are committed as one unit
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import case, func, select
from sqlalchemy.orm import selectinload

from guildchat.db.models import Channel, Server, ServerMember, User
from guildchat.errors import ValidationFailed

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

DEFAULT_CHANNEL_NAME = "general"


async def create_server(
    db: AsyncSession,
    owner_id: str,
    name: str,
    image_url: str | None = None,
) -> Server:
    """Create a server with its owner membership and default channel. Commits.

    Raises:
        ValidationFailed: Blank name.
    """
    if not name.strip():
        raise ValidationFailed("Server name must not be blank")

    server = Server(name=name.strip(), image_url=image_url, owner_id=owner_id)
    db.add(server)
    await db.flush()

    db.add(ServerMember(server_id=server.id, user_id=owner_id, role="owner"))
    db.add(Channel(name=DEFAULT_CHANNEL_NAME, type="text", server_id=server.id))
    await db.commit()

    logger.info("server_created", server_id=server.id, owner_id=owner_id)
    return server


async def list_servers_for_user(db: AsyncSession, user_id: str) -> list[Server]:
    """Servers where the user holds a membership, oldest membership first."""
    result = await db.execute(
        select(Server)
        .join(ServerMember, ServerMember.server_id == Server.id)
        .where(ServerMember.user_id == user_id)
        .order_by(ServerMember.joined_at.asc())
    )
    return list(result.scalars().all())


async def get_server_with_channels(db: AsyncSession, server_id: str) -> Server | None:
    result = await db.execute(
        select(Server)
        .options(selectinload(Server.channels))
        .where(Server.id == server_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_members(db: AsyncSession, server_id: str) -> list[tuple[ServerMember, User]]:
    """Members with their profiles: owner first, then by join time."""
    owner_first = case((ServerMember.role == "owner", 0), else_=1)
    result = await db.execute(
        select(ServerMember, User)
        .join(User, User.id == ServerMember.user_id)
        .where(ServerMember.server_id == server_id)
        .order_by(owner_first, ServerMember.joined_at.asc())
    )
    return [(row[0], row[1]) for row in result.all()]


async def count_members(db: AsyncSession, server_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(ServerMember).where(ServerMember.server_id == server_id)
    )
    return int(result.scalar_one())
