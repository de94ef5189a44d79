"""Chat schema: users, servers, memberships, channels, messages, DMs, invites.

Revision ID: 001_chat_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_chat_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id VARCHAR(64) PRIMARY KEY,
            email VARCHAR(320) UNIQUE,
            first_name VARCHAR(100),
            last_name VARCHAR(100),
            profile_image_url TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Servers ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS servers (
            id VARCHAR(36) PRIMARY KEY,
            name VARCHAR(100) NOT NULL,
            image_url TEXT,
            owner_id VARCHAR(64) NOT NULL REFERENCES users(id),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Server Members ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS server_members (
            id VARCHAR(36) PRIMARY KEY,
            server_id VARCHAR(36) NOT NULL REFERENCES servers(id) ON DELETE CASCADE,
            user_id VARCHAR(64) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            role VARCHAR(20) NOT NULL DEFAULT 'member',
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_server_members_server_user UNIQUE (server_id, user_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_server_members_user_id
        ON server_members(user_id)
    """)

    # --- Channels ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS channels (
            id VARCHAR(36) PRIMARY KEY,
            name VARCHAR(100) NOT NULL,
            type VARCHAR(20) NOT NULL DEFAULT 'text',
            description TEXT,
            server_id VARCHAR(36) NOT NULL REFERENCES servers(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_channels_server_id
        ON channels(server_id)
    """)

    # --- Messages ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id VARCHAR(36) PRIMARY KEY,
            content TEXT,
            image_url TEXT,
            channel_id VARCHAR(36) REFERENCES channels(id) ON DELETE CASCADE,
            user_id VARCHAR(64) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            recipient_id VARCHAR(64) REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_messages_channel_created
        ON messages(channel_id, created_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_messages_user_recipient
        ON messages(user_id, recipient_id)
    """)

    # --- DM Conversations (one row per unordered pair, stored ordered) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS dm_conversations (
            id VARCHAR(36) PRIMARY KEY,
            user1_id VARCHAR(64) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            user2_id VARCHAR(64) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_dm_conversations_pair UNIQUE (user1_id, user2_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_dm_conversations_user2_id
        ON dm_conversations(user2_id)
    """)

    # --- Server Invites ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS server_invites (
            id VARCHAR(36) PRIMARY KEY,
            code VARCHAR(16) NOT NULL,
            server_id VARCHAR(36) NOT NULL REFERENCES servers(id) ON DELETE CASCADE,
            created_by_id VARCHAR(64) NOT NULL REFERENCES users(id),
            max_uses INTEGER,
            used_count INTEGER NOT NULL DEFAULT 0,
            expires_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_server_invites_code UNIQUE (code),
            CONSTRAINT ck_server_invites_used_within_max
                CHECK (max_uses IS NULL OR used_count <= max_uses)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_server_invites_server_id
        ON server_invites(server_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS server_invites CASCADE")
    op.execute("DROP TABLE IF EXISTS dm_conversations CASCADE")
    op.execute("DROP TABLE IF EXISTS messages CASCADE")
    op.execute("DROP TABLE IF EXISTS channels CASCADE")
    op.execute("DROP TABLE IF EXISTS server_members CASCADE")
    op.execute("DROP TABLE IF EXISTS servers CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
