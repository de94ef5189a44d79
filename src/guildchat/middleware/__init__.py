"""Middleware and exception handler registration."""

from fastapi import FastAPI

from guildchat.config import Settings
from guildchat.middleware.cors import setup_cors
from guildchat.middleware.error_handler import setup_error_handlers
from guildchat.middleware.logging import setup_logging
from guildchat.middleware.rate_limit import RateLimitMiddleware
from guildchat.middleware.request_id import RequestContextMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware. Starlette runs them in reverse-add order.

    CORS is added last so it is outermost and decorates 429 responses too.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestContextMiddleware)
    setup_cors(app, settings)
