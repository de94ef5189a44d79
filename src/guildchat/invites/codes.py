"""Invite code generation for server invites.

Codes are 8 characters from A-Z and 0-9 (URL-safe as-is), generated with a
cryptographic random source. Lookups are case-insensitive.
"""

from __future__ import annotations

import secrets
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from guildchat.db.models import ServerInvite

INVITE_CHARSET = string.ascii_uppercase + string.digits
INVITE_LENGTH = 8
MAX_GENERATION_ATTEMPTS = 10


def generate_invite_code() -> str:
    """Generate a cryptographically random invite code."""
    return "".join(secrets.choice(INVITE_CHARSET) for _ in range(INVITE_LENGTH))


def normalize_invite_code(code: str) -> str:
    """Normalize an invite code for lookup (trimmed, upper case)."""
    return code.strip().upper()


async def generate_unique_invite_code(db: AsyncSession) -> str:
    """Generate a code not already used by any invite."""
    for _ in range(MAX_GENERATION_ATTEMPTS):
        code = generate_invite_code()
        existing = await db.execute(select(ServerInvite.id).where(ServerInvite.code == code))
        if existing.scalar_one_or_none() is None:
            return code
    msg = f"Failed to generate unique invite code after {MAX_GENERATION_ATTEMPTS} attempts"
    raise RuntimeError(msg)
