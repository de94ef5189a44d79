"""Server invite lifecycle: create, look up, redeem.

Rules:
- Codes are server-generated and globally unique (unique index + retry)
- ``max_uses`` null means unlimited; ``expires_at`` null means never
- Redemption failure precedence: unknown code, expired, already a member,
  uses exhausted
- A successful redemption creates the membership and consumes one use in
  the same transaction; the use is consumed with a conditional UPDATE so
  concurrent redemptions can never push ``used_count`` past ``max_uses``
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from guildchat.db.models import ServerInvite, ServerMember
from guildchat.errors import AlreadyMember, InviteExhausted, InviteExpired, NotFound, ValidationFailed
from guildchat.invites.codes import generate_unique_invite_code, normalize_invite_code
from guildchat.permissions import is_member

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

MAX_CREATE_ATTEMPTS = 3


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def is_expired(invite: ServerInvite, now: datetime | None = None) -> bool:
    if invite.expires_at is None:
        return False
    return _as_utc(invite.expires_at) <= (now or datetime.now(timezone.utc))


def is_exhausted(invite: ServerInvite) -> bool:
    return invite.max_uses is not None and invite.used_count >= invite.max_uses


async def create_invite(
    db: AsyncSession,
    server_id: str,
    creator_id: str,
    max_uses: int | None = None,
    expires_at: datetime | None = None,
) -> ServerInvite:
    """Create an invite with a fresh unique code. Commits."""
    if max_uses is not None and max_uses < 1:
        raise ValidationFailed("max_uses must be at least 1")
    if expires_at is not None and _as_utc(expires_at) <= datetime.now(timezone.utc):
        raise ValidationFailed("expires_at must be in the future")

    for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
        invite = ServerInvite(
            code=await generate_unique_invite_code(db),
            server_id=server_id,
            created_by_id=creator_id,
            max_uses=max_uses,
            used_count=0,
            expires_at=_as_utc(expires_at) if expires_at else None,
        )
        db.add(invite)
        try:
            await db.commit()
        except IntegrityError:
            # Another request took the same code between check and insert
            await db.rollback()
            logger.warning("invite_code_collision", server_id=server_id, attempt=attempt)
            continue
        logger.info("invite_created", invite_id=invite.id, server_id=server_id, max_uses=max_uses)
        return invite

    msg = "Failed to create invite: code collisions"
    raise RuntimeError(msg)


async def get_invite_by_code(db: AsyncSession, code: str) -> ServerInvite | None:
    """Look up an invite (case-insensitive) with its server loaded."""
    result = await db.execute(
        select(ServerInvite)
        .options(selectinload(ServerInvite.server))
        .where(ServerInvite.code == normalize_invite_code(code))
    )
    return result.scalar_one_or_none()


async def list_invites(db: AsyncSession, server_id: str) -> list[ServerInvite]:
    result = await db.execute(
        select(ServerInvite)
        .where(ServerInvite.server_id == server_id)
        .order_by(ServerInvite.created_at.desc())
    )
    return list(result.scalars().all())


async def consume_invite_use(db: AsyncSession, invite_id: str) -> bool:
    """Increment ``used_count`` only while it is below ``max_uses``.

    Returns False when the invite has no uses left. Does not commit.
    """
    result = await db.execute(
        update(ServerInvite)
        .where(ServerInvite.id == invite_id)
        .where(or_(ServerInvite.max_uses.is_(None), ServerInvite.used_count < ServerInvite.max_uses))
        .values(used_count=ServerInvite.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def redeem_invite(db: AsyncSession, code: str, user_id: str) -> str:
    """
    Join the invite's server as ``member``. Returns the server id.

    Raises:
        NotFound: Unknown code.
        InviteExpired: ``expires_at`` has passed.
        AlreadyMember: The user already belongs to the server.
        InviteExhausted: No uses left.
    """
    invite = await get_invite_by_code(db, code)
    if invite is None:
        raise NotFound("Invite not found")
    if is_expired(invite):
        raise InviteExpired()

    invite_id, server_id = invite.id, invite.server_id
    if await is_member(db, user_id, server_id):
        raise AlreadyMember()

    if not await consume_invite_use(db, invite_id):
        await db.rollback()
        raise InviteExhausted()

    db.add(ServerMember(server_id=server_id, user_id=user_id, role="member"))
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent redemption by the same user; the increment is undone too
        await db.rollback()
        raise AlreadyMember() from None

    logger.info("invite_redeemed", invite_id=invite_id, server_id=server_id, user_id=user_id)
    return server_id
