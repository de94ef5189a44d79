"""Request/response schemas for channel endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CreateChannelRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: str = "text"
    description: str | None = Field(None, max_length=1024)
    server_id: str


class ChannelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: str
    description: str | None = None
    server_id: str
    created_at: datetime
    updated_at: datetime
