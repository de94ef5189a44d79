"""ORM models for users, servers, channels, messages, DMs and invites.

Tables are created by the Alembic migration ``001_chat_tables``; the
uniqueness constraints declared here mirror the ones in that migration and
are what the services rely on for race-free membership, invite and DM
conversation handling.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guildchat.db.base import Base

CHANNEL_TYPES = ("text", "voice")


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Identity record, upserted from identity-provider claims."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    memberships: Mapped[list[ServerMember]] = relationship("ServerMember", back_populates="user")

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        if parts:
            return " ".join(parts)
        if self.email:
            return self.email.split("@", 1)[0]
        return "User"


# ---------------------------------------------------------------------------
# Servers (guilds), memberships, channels
# ---------------------------------------------------------------------------


class Server(Base):
    """A guild. The owner always holds an ``owner`` membership."""

    __tablename__ = "servers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    owner: Mapped[User] = relationship("User", foreign_keys=[owner_id])
    members: Mapped[list[ServerMember]] = relationship(
        "ServerMember", back_populates="server", cascade="all, delete-orphan"
    )
    channels: Mapped[list[Channel]] = relationship(
        "Channel", back_populates="server", cascade="all, delete-orphan", order_by="Channel.created_at"
    )


class ServerMember(Base):
    """Membership join row, one per (server, user) pair."""

    __tablename__ = "server_members"
    __table_args__ = (
        UniqueConstraint("server_id", "user_id", name="uq_server_members_server_user"),
        Index("ix_server_members_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    server_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("servers.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="member")
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    server: Mapped[Server] = relationship("Server", back_populates="members")
    user: Mapped[User] = relationship("User", back_populates="memberships")


class Channel(Base):
    __tablename__ = "channels"
    __table_args__ = (Index("ix_channels_server_id", "server_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="text")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    server_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("servers.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    server: Mapped[Server] = relationship("Server", back_populates="channels")


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class Message(Base):
    """A chat message.

    Channel messages have ``channel_id`` set and ``recipient_id`` null;
    direct messages have ``channel_id`` null and ``recipient_id`` set.
    Messages are immutable once created.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_channel_created", "channel_id", "created_at"),
        Index("ix_messages_user_recipient", "user_id", "recipient_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    channel_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("channels.id", ondelete="CASCADE"), nullable=True
    )
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    recipient_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    author: Mapped[User] = relationship("User", foreign_keys=[user_id])
    recipient: Mapped[User | None] = relationship("User", foreign_keys=[recipient_id])


class DmConversation(Base):
    """One row per unordered user pair, stored as (min(id), max(id))."""

    __tablename__ = "dm_conversations"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_dm_conversations_pair"),
        Index("ix_dm_conversations_user2_id", "user2_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user1_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user2_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    user1: Mapped[User] = relationship("User", foreign_keys=[user1_id])
    user2: Mapped[User] = relationship("User", foreign_keys=[user2_id])


# ---------------------------------------------------------------------------
# Invites
# ---------------------------------------------------------------------------


class ServerInvite(Base):
    """Join link for a server. ``max_uses`` and ``expires_at`` null mean unlimited."""

    __tablename__ = "server_invites"
    __table_args__ = (
        CheckConstraint("max_uses IS NULL OR used_count <= max_uses", name="used_within_max"),
        Index("ix_server_invites_server_id", "server_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    server_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("servers.id", ondelete="CASCADE"), nullable=False
    )
    created_by_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    server: Mapped[Server] = relationship("Server")
    created_by: Mapped[User] = relationship("User")
