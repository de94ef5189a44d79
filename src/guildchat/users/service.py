"""User lookup, provisioning and search."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from guildchat.auth.jwt import PROFILE_CLAIMS
from guildchat.db.filters import contains_ci
from guildchat.db.models import User, utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def upsert_user(db: AsyncSession, user_id: str, claims: dict[str, Any]) -> User:
    """
    Create or refresh a user from identity-provider claims.

    Only claims present in ``claims`` overwrite stored profile fields. The
    id is immutable. Commits when anything changed.
    """
    profile = {k: claims[k] for k in PROFILE_CLAIMS if claims.get(k) is not None}

    user = await get_user_by_id(db, user_id)
    if user is None:
        user = User(id=user_id, **profile)
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            # Concurrent first request for the same subject already inserted it
            await db.rollback()
            user = await get_user_by_id(db, user_id)
            if user is None:
                raise
        else:
            logger.info("user_provisioned", user_id=user_id)
            return user

    changed = False
    for field, value in profile.items():
        if getattr(user, field) != value:
            setattr(user, field, value)
            changed = True
    if changed:
        user.updated_at = utcnow()
        await db.commit()
    return user


async def search_users(db: AsyncSession, query: str, exclude_user_id: str, limit: int = 20) -> list[User]:
    """Case-insensitive substring match on first name, last name and email."""
    result = await db.execute(
        select(User)
        .where(User.id != exclude_user_id)
        .where(
            or_(
                contains_ci(User.first_name, query),
                contains_ci(User.last_name, query),
                contains_ci(User.email, query),
            )
        )
        .order_by(User.first_name, User.last_name, User.id)
        .limit(limit)
    )
    return list(result.scalars().all())
