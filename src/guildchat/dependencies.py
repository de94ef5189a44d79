"""Shared FastAPI dependencies."""

from fastapi import Request

from guildchat.realtime.registry import FanoutRegistry


def get_fanout(request: Request) -> FanoutRegistry:
    """Return the process-wide fan-out registry created by ``create_app``."""
    return request.app.state.fanout
