"""Fan-out registry for push connections.

Tracks every open push connection per delivery scope (a channel or a DM
pair) and delivers newly created messages to all of them.

One registry is created per process by ``create_app`` and stored on
``app.state``; handlers receive it through ``guildchat.dependencies``.
State lives only in memory and starts empty on restart.

Safe for asyncio without locks: every mutation and every publish runs to
completion without awaiting, so no other task observes a half-updated map.
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from guildchat.realtime.scopes import Scope

logger = structlog.get_logger()


@dataclass(frozen=True)
class PushEvent:
    """One server-sent event: an event name and a JSON-encoded body."""

    event: str
    data: str


class ConnectionClosed(Exception):
    """Raised by a connection that can no longer accept events."""


class Connection(Protocol):
    def send(self, event: PushEvent) -> None: ...

    def close(self) -> None: ...


class QueueConnection:
    """Bounded in-memory buffer feeding one push stream.

    ``send`` never blocks. A full buffer means the remote end is not keeping
    up; it raises ``ConnectionClosed`` so the registry drops the subscriber
    instead of stalling everyone else.
    """

    def __init__(self, maxsize: int = 256) -> None:
        self._queue: asyncio.Queue[PushEvent | None] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def send(self, event: PushEvent) -> None:
        if self.closed:
            raise ConnectionClosed("connection closed")
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            raise ConnectionClosed("send buffer full") from None

    def close(self) -> None:
        """Discard pending events and wake the reader with an end marker."""
        if self.closed:
            return
        self.closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def receive(self) -> PushEvent | None:
        """Next event, or None once the connection has been closed."""
        return await self._queue.get()

    @property
    def pending(self) -> int:
        return self._queue.qsize()


@dataclass
class Subscription:
    """Handle returned by ``subscribe``; pass it back to ``unsubscribe``."""

    scope: Scope
    connection: Connection
    user_id: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    connected_at: float = field(default_factory=time.time)
    messages_sent: int = 0


class FanoutRegistry:
    """Maps scopes to their open connections and broadcasts to them."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}  # sub_id -> subscription
        self._scopes: dict[Scope, dict[str, Subscription]] = {}  # scope -> {sub_id: subscription}

    @property
    def connection_count(self) -> int:
        return len(self._subscriptions)

    def subscriber_count(self, scope: Scope) -> int:
        return len(self._scopes.get(scope, ()))

    def subscribe(self, scope: Scope, connection: Connection, user_id: str | None = None) -> Subscription:
        """Register a connection under a scope.

        Access control must already have approved the read. Repeat
        subscriptions from the same client are kept as separate entries.
        """
        sub = Subscription(scope=scope, connection=connection, user_id=user_id)
        self._subscriptions[sub.id] = sub
        self._scopes.setdefault(scope, {})[sub.id] = sub
        logger.info("sse_subscribed", scope=str(scope), sub_id=sub.id, user_id=user_id)
        return sub

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a subscription. Idempotent; returns False if already gone."""
        sub = self._subscriptions.pop(subscription.id, None)
        if sub is None:
            return False

        members = self._scopes.get(sub.scope)
        if members is not None:
            members.pop(sub.id, None)
            if not members:
                del self._scopes[sub.scope]

        logger.info("sse_unsubscribed", scope=str(sub.scope), sub_id=sub.id, user_id=sub.user_id)
        return True

    def publish(self, scope: Scope, event: str, data: dict[str, Any]) -> int:
        """Deliver an event to every connection subscribed to ``scope``.

        Iterates a snapshot of the scope's subscribers. A connection that
        fails to accept the event is unsubscribed and closed; delivery to
        the others continues. Publishing to an empty scope is a no-op.

        Returns the number of connections that accepted the event.
        """
        subscribers = list(self._scopes.get(scope, {}).values())
        if not subscribers:
            return 0

        push = PushEvent(event=event, data=json.dumps(data, default=str))
        sent = 0
        failed: list[Subscription] = []

        for sub in subscribers:
            try:
                sub.connection.send(push)
                sub.messages_sent += 1
                sent += 1
            except Exception as exc:  # noqa: BLE001
                logger.warning("sse_dropped", scope=str(scope), sub_id=sub.id, error=str(exc))
                failed.append(sub)

        for sub in failed:
            self.unsubscribe(sub)
            try:
                sub.connection.close()
            except Exception:  # noqa: BLE001
                logger.debug("sse_close_failed", sub_id=sub.id, exc_info=True)

        return sent

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "total_connections": len(self._subscriptions),
            "unique_users": len({s.user_id for s in self._subscriptions.values() if s.user_id}),
            "scopes": {str(scope): len(subs) for scope, subs in self._scopes.items()},
        }
