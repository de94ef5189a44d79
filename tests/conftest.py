"""Shared test fixtures.

Tests run against a throwaway SQLite database per test (created from the ORM
metadata) with Redis disabled, so no external services are needed. JWT keys
are generated once per session.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="guildchat_test_"))


def _write_test_keys(directory: Path) -> tuple[Path, Path]:
    """Generate an RSA key pair for signing test tokens."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_path = directory / "jwt_private.pem"
    public_path = directory / "jwt_public.pem"
    private_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    public_path.write_bytes(
        key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return private_path, public_path


# Configure before any guildchat import reads settings
_private, _public = _write_test_keys(_TEST_ROOT)
os.environ["GUILDCHAT_JWT_PRIVATE_KEY_PATH"] = str(_private)
os.environ["GUILDCHAT_JWT_PUBLIC_KEY_PATH"] = str(_public)
os.environ["GUILDCHAT_UPLOAD_DIR"] = str(_TEST_ROOT / "uploads")
os.environ["GUILDCHAT_DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT / 'default.db'}"
os.environ["GUILDCHAT_REDIS_URL"] = ""
os.environ["GUILDCHAT_LOG_FORMAT"] = "console"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from guildchat.auth.jwt import create_access_token, reset_keys  # noqa: E402
from guildchat.config import get_settings  # noqa: E402
from guildchat.database import close_db, get_engine, get_session, init_db  # noqa: E402
from guildchat.db.base import Base  # noqa: E402
from guildchat.db.models import User  # noqa: E402
from guildchat.main import create_app  # noqa: E402
from guildchat.realtime.registry import FanoutRegistry  # noqa: E402

get_settings.cache_clear()
reset_keys()


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[str, None]:
    """Fresh SQLite database with all tables. Yields its URL."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    await init_db(url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield url
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: str) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for service-level tests and assertions."""
    async for session in get_session():
        yield session
        break


@pytest.fixture
def app(database: str):  # noqa: ANN201
    """Application instance bound to the per-test database."""
    return create_app()


@pytest.fixture
def fanout(app) -> FanoutRegistry:  # noqa: ANN001
    return app.state.fanout


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:  # noqa: ANN001
    """Async HTTP client driving the app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def make_token(user_id: str, **profile: str) -> str:
    return create_access_token(user_id, **profile)


def auth_headers(user_id: str, **profile: str) -> dict[str, str]:
    """Authorization header for a provider user; the user is provisioned on first request."""
    return {"Authorization": f"Bearer {make_token(user_id, **profile)}"}


@pytest.fixture
def headers_for():  # noqa: ANN201
    """Factory for auth headers of arbitrary users."""
    return auth_headers


@pytest.fixture
def user_factory(db_session: AsyncSession):  # noqa: ANN201
    """Insert users directly, bypassing token provisioning."""

    async def _create(user_id: str, **profile: str) -> User:
        user = User(id=user_id, **profile)
        db_session.add(user)
        await db_session.commit()
        return user

    return _create


@pytest.fixture
def alice() -> dict[str, str]:
    return auth_headers("user-alice", email="alice@example.com", first_name="Alice", last_name="Liddell")


@pytest.fixture
def bob() -> dict[str, str]:
    return auth_headers("user-bob", email="bob@example.com", first_name="Bob", last_name="Builder")


@pytest.fixture
def carol() -> dict[str, str]:
    return auth_headers("user-carol", email="carol@example.com", first_name="Carol", last_name="Danvers")
