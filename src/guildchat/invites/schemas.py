"""Request/response schemas for invite endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CreateInviteRequest(BaseModel):
    max_uses: int | None = Field(None, ge=1)
    expires_at: datetime | None = None


class InviteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    server_id: str
    created_by_id: str
    max_uses: int | None = None
    used_count: int
    expires_at: datetime | None = None
    created_at: datetime


class InviteServerPreview(BaseModel):
    id: str
    name: str
    image_url: str | None = None
    member_count: int


class InvitePreviewResponse(BaseModel):
    """Public pre-join view of an invite."""

    code: str
    server: InviteServerPreview
    max_uses: int | None = None
    used_count: int
    expires_at: datetime | None = None
    is_expired: bool
    is_exhausted: bool
