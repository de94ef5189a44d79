"""Response schemas for user endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    """Public profile projection, embedded in messages, members and DMs."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    display_name: str
    profile_image_url: str | None = None
    created_at: datetime | None = None


class UserSearchResponse(BaseModel):
    users: list[UserResponse]
