"""Hydrated message schema shared by channel and DM endpoints and push events."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from guildchat.users.schemas import UserResponse


class MessageResponse(BaseModel):
    """A message joined with its author (and recipient, for DMs)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    content: str | None = None
    image_url: str | None = None
    channel_id: str | None = None
    user_id: str
    recipient_id: str | None = None
    created_at: datetime
    updated_at: datetime
    user: UserResponse
    recipient: UserResponse | None = None
