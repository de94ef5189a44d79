"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Query, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from guildchat.auth.jwt import verify_token
from guildchat.database import get_session
from guildchat.db.models import User
from guildchat.users.service import upsert_user

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    token: str | None = Query(None, description="Access token for clients that cannot send headers (EventSource)"),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Verify the provider-issued JWT and return the (upserted) User.

    The token is read from ``Authorization: Bearer`` or, for push streams,
    the ``token`` query parameter. Raises 401 when missing or invalid.
    """
    raw = credentials.credentials if credentials else token
    if not raw:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = verify_token(raw, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e), headers={"WWW-Authenticate": "Bearer"}) from e

    return await upsert_user(db, str(payload["sub"]), payload)
