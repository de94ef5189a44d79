"""Request/response schemas for server endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from guildchat.channels.schemas import ChannelResponse
from guildchat.users.schemas import UserResponse


class CreateServerRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    image_url: str | None = Field(None, max_length=2048)


class ServerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    image_url: str | None = None
    owner_id: str
    created_at: datetime
    updated_at: datetime


class ServerWithChannelsResponse(ServerResponse):
    channels: list[ChannelResponse] = []


class ServerMemberResponse(BaseModel):
    """A member's profile plus membership fields."""

    user: UserResponse
    role: str
    is_owner: bool
    joined_at: datetime
