"""Server-Sent Events streams backed by the fan-out registry."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

import structlog
from sse_starlette.sse import EventSourceResponse
from starlette.requests import Request

from guildchat.config import get_settings
from guildchat.realtime.registry import FanoutRegistry, QueueConnection
from guildchat.realtime.scopes import Scope

logger = structlog.get_logger()


async def event_stream(
    request: Request,
    registry: FanoutRegistry,
    scope: Scope,
    user_id: str,
    *,
    heartbeat_seconds: float = 30.0,
    queue_size: int = 256,
) -> AsyncIterator[dict[str, Any]]:
    """Yield SSE events for one client until it disconnects.

    Emits ``connected`` first, then every event published to ``scope``, with
    a ``heartbeat`` after each idle interval. The subscription is removed
    when the generator finishes for any reason, including cancellation by
    the transport on disconnect.
    """
    connection = QueueConnection(maxsize=queue_size)
    subscription = registry.subscribe(scope, connection, user_id=user_id)
    try:
        yield {"event": "connected", "data": json.dumps({"type": "connected", "scope": str(scope)})}

        while True:
            try:
                push = await asyncio.wait_for(connection.receive(), timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    break
                yield {
                    "event": "heartbeat",
                    "data": json.dumps({"timestamp": datetime.now(timezone.utc).isoformat()}),
                }
                continue

            if push is None:
                # Dropped by the registry (buffer overflow)
                break
            yield {"event": push.event, "data": push.data}
    except asyncio.CancelledError:
        logger.info("sse_disconnected", scope=str(scope), user_id=user_id)
        raise
    finally:
        registry.unsubscribe(subscription)


def stream_response(request: Request, registry: FanoutRegistry, scope: Scope, user_id: str) -> EventSourceResponse:
    """Build a ``text/event-stream`` response for ``scope``."""
    settings = get_settings()
    return EventSourceResponse(
        event_stream(
            request,
            registry,
            scope,
            user_id,
            heartbeat_seconds=settings.sse_heartbeat_seconds,
            queue_size=settings.sse_queue_size,
        ),
        headers={"Cache-Control": "no-cache"},
    )
