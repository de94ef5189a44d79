"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from guildchat.auth.router import router as auth_router
from guildchat.channels.router import router as channels_router
from guildchat.config import get_settings
from guildchat.database import close_db, init_db
from guildchat.dm.router import router as dm_router
from guildchat.health.router import router as health_router
from guildchat.invites.router import router as invites_router
from guildchat.middleware import setup_middleware
from guildchat.realtime.registry import FanoutRegistry
from guildchat.redis_client import close_redis, init_redis
from guildchat.servers.router import router as servers_router
from guildchat.uploads import ensure_upload_directory
from guildchat.users.router import router as users_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    logger.info("app_started", environment=settings.environment, version=settings.app_version)

    yield

    stats = app.state.fanout.get_stats()
    logger.info("app_stopping", open_streams=stats["total_connections"])
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Guildchat API",
        description="Servers, channels, direct messages and live message streams",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.fanout = FanoutRegistry()

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(servers_router)
    app.include_router(channels_router)
    app.include_router(dm_router)
    app.include_router(invites_router)

    ensure_upload_directory()
    app.mount(settings.upload_url_prefix, StaticFiles(directory=settings.upload_dir), name="uploads")

    return app


app = create_app()
