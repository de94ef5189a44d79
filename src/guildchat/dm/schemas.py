"""Response schemas for direct-message endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from guildchat.messages.schemas import MessageResponse
from guildchat.users.schemas import UserResponse


class ConversationResponse(BaseModel):
    id: str
    other_user: UserResponse
    last_message: MessageResponse | None = None
    created_at: datetime
    updated_at: datetime
