"""Delivery scopes for push streams.

A scope is either a channel or a direct-message pair. DM pairs are keyed by
the canonical (sorted) pair so both participants land on the same scope
regardless of who opens the stream first.
"""

from __future__ import annotations

from dataclasses import dataclass


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    """Order-independent key for two user ids: (smaller, larger)."""
    return (user_a, user_b) if user_a <= user_b else (user_b, user_a)


@dataclass(frozen=True)
class Scope:
    kind: str
    key: tuple[str, ...]

    def __str__(self) -> str:
        return f"{self.kind}:{':'.join(self.key)}"


def channel_scope(channel_id: str) -> Scope:
    return Scope("channel", (channel_id,))


def dm_scope(user_a: str, user_b: str) -> Scope:
    return Scope("dm", canonical_pair(user_a, user_b))
