"""Unit tests for the push fan-out registry."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from guildchat.realtime.registry import (
    ConnectionClosed,
    FanoutRegistry,
    PushEvent,
    QueueConnection,
)
from guildchat.realtime.scopes import channel_scope, dm_scope


@pytest.fixture
def registry() -> FanoutRegistry:
    """Fresh registry for each test."""
    return FanoutRegistry()


def _make_conn(*, fail_send: bool = False) -> MagicMock:
    """Create a mock connection recording sent events."""
    conn = MagicMock()
    if fail_send:
        conn.send = MagicMock(side_effect=ConnectionClosed("connection closed"))
    return conn


class TestSubscribe:
    def test_subscribe_registers_connection(self, registry: FanoutRegistry) -> None:
        registry.subscribe(channel_scope("c1"), _make_conn(), user_id="u1")
        assert registry.connection_count == 1
        assert registry.subscriber_count(channel_scope("c1")) == 1
        stats = registry.get_stats()
        assert stats["total_connections"] == 1
        assert stats["unique_users"] == 1
        assert stats["scopes"] == {"channel:c1": 1}

    def test_repeat_subscriptions_are_independent(self, registry: FanoutRegistry) -> None:
        scope = channel_scope("c1")
        first = registry.subscribe(scope, _make_conn(), user_id="u1")
        second = registry.subscribe(scope, _make_conn(), user_id="u1")
        assert first.id != second.id
        assert registry.subscriber_count(scope) == 2
        assert registry.get_stats()["unique_users"] == 1

    def test_dm_scope_shared_by_both_participants(self, registry: FanoutRegistry) -> None:
        registry.subscribe(dm_scope("a", "b"), _make_conn(), user_id="a")
        registry.subscribe(dm_scope("b", "a"), _make_conn(), user_id="b")
        assert registry.subscriber_count(dm_scope("a", "b")) == 2


class TestUnsubscribe:
    def test_unsubscribe_cleans_up_scope(self, registry: FanoutRegistry) -> None:
        sub = registry.subscribe(channel_scope("c1"), _make_conn())
        assert registry.unsubscribe(sub) is True
        assert registry.connection_count == 0
        assert registry.get_stats()["scopes"] == {}

    def test_unsubscribe_is_idempotent(self, registry: FanoutRegistry) -> None:
        sub = registry.subscribe(channel_scope("c1"), _make_conn())
        registry.unsubscribe(sub)
        assert registry.unsubscribe(sub) is False
        assert registry.connection_count == 0

    def test_unsubscribe_keeps_other_subscribers(self, registry: FanoutRegistry) -> None:
        scope = channel_scope("c1")
        sub = registry.subscribe(scope, _make_conn())
        registry.subscribe(scope, _make_conn())
        registry.unsubscribe(sub)
        assert registry.subscriber_count(scope) == 1


class TestPublish:
    def test_reaches_scope_subscribers_only(self, registry: FanoutRegistry) -> None:
        in_scope = _make_conn()
        other = _make_conn()
        registry.subscribe(channel_scope("c1"), in_scope)
        registry.subscribe(channel_scope("c2"), other)

        sent = registry.publish(channel_scope("c1"), "message", {"id": "m1"})

        assert sent == 1
        in_scope.send.assert_called_once()
        other.send.assert_not_called()
        event = in_scope.send.call_args.args[0]
        assert event.event == "message"
        assert json.loads(event.data) == {"id": "m1"}

    def test_empty_scope_is_noop(self, registry: FanoutRegistry) -> None:
        assert registry.publish(channel_scope("nobody"), "message", {"id": "m1"}) == 0
        assert registry.get_stats()["scopes"] == {}

    def test_payload_encoded_once_for_all(self, registry: FanoutRegistry) -> None:
        conns = [_make_conn() for _ in range(3)]
        for conn in conns:
            registry.subscribe(channel_scope("c1"), conn)
        registry.publish(channel_scope("c1"), "message", {"id": "m1"})
        events = [c.send.call_args.args[0] for c in conns]
        assert all(e is events[0] for e in events)

    def test_failed_connection_removed_others_still_delivered(self, registry: FanoutRegistry) -> None:
        good = _make_conn()
        bad = _make_conn(fail_send=True)
        scope = channel_scope("c1")
        registry.subscribe(scope, bad)
        registry.subscribe(scope, good)

        sent = registry.publish(scope, "message", {"id": "m1"})

        assert sent == 1
        good.send.assert_called_once()
        bad.close.assert_called_once()
        assert registry.subscriber_count(scope) == 1

        registry.publish(scope, "message", {"id": "m2"})
        assert bad.send.call_count == 1
        assert good.send.call_count == 2

    def test_unexpected_send_error_also_drops(self, registry: FanoutRegistry) -> None:
        bad = _make_conn()
        bad.send.side_effect = RuntimeError("socket gone")
        registry.subscribe(channel_scope("c1"), bad)
        assert registry.publish(channel_scope("c1"), "message", {}) == 0
        assert registry.connection_count == 0

    def test_publish_order_preserved_per_connection(self, registry: FanoutRegistry) -> None:
        conn = QueueConnection(maxsize=10)
        registry.subscribe(channel_scope("c1"), conn)
        for i in range(5):
            registry.publish(channel_scope("c1"), "message", {"n": i})
        assert conn.pending == 5

    def test_counts_messages_sent(self, registry: FanoutRegistry) -> None:
        sub = registry.subscribe(channel_scope("c1"), _make_conn())
        registry.publish(channel_scope("c1"), "message", {})
        registry.publish(channel_scope("c1"), "message", {})
        assert sub.messages_sent == 2


class TestQueueConnection:
    @pytest.mark.asyncio
    async def test_receive_in_order(self) -> None:
        conn = QueueConnection(maxsize=4)
        conn.send(PushEvent("message", "1"))
        conn.send(PushEvent("message", "2"))
        assert (await conn.receive()).data == "1"
        assert (await conn.receive()).data == "2"

    def test_full_buffer_raises(self) -> None:
        conn = QueueConnection(maxsize=1)
        conn.send(PushEvent("message", "1"))
        with pytest.raises(ConnectionClosed):
            conn.send(PushEvent("message", "2"))

    @pytest.mark.asyncio
    async def test_close_wakes_reader_with_end_marker(self) -> None:
        conn = QueueConnection(maxsize=2)
        conn.send(PushEvent("message", "1"))
        conn.close()
        assert await conn.receive() is None
        with pytest.raises(ConnectionClosed):
            conn.send(PushEvent("message", "2"))

    def test_close_twice(self) -> None:
        conn = QueueConnection()
        conn.close()
        conn.close()
        assert conn.closed

    def test_overflowing_subscriber_is_dropped(self) -> None:
        registry = FanoutRegistry()
        slow = QueueConnection(maxsize=2)
        registry.subscribe(channel_scope("c1"), slow)
        for i in range(3):
            registry.publish(channel_scope("c1"), "message", {"n": i})
        assert registry.connection_count == 0
        assert slow.closed
