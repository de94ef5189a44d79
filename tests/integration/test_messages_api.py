"""Integration tests for channel messages, search and push delivery."""

from __future__ import annotations

import json

import pytest
from httpx import AsyncClient

from guildchat.realtime.registry import FanoutRegistry, QueueConnection
from guildchat.realtime.scopes import channel_scope


async def _server_with_member(client: AsyncClient, owner: dict, member: dict) -> tuple[dict, str]:
    """Owner creates a server; member joins through an invite. Returns (server, general channel id)."""
    server = (await client.post("/api/servers", json={"name": "Guild"}, headers=owner)).json()
    invite = (await client.post(f"/api/servers/{server['id']}/invites", json={}, headers=owner)).json()
    joined = await client.post(f"/api/invites/{invite['code']}/join", headers=member)
    assert joined.status_code == 200, joined.text
    return server, server["channels"][0]["id"]


@pytest.mark.asyncio
async def test_post_message_returns_hydrated_author(client: AsyncClient, alice: dict) -> None:
    server = (await client.post("/api/servers", json={"name": "Guild"}, headers=alice)).json()
    channel_id = server["channels"][0]["id"]

    response = await client.post(f"/api/channels/{channel_id}/messages", data={"content": "hello"}, headers=alice)
    assert response.status_code == 201, response.text
    message = response.json()
    assert message["content"] == "hello"
    assert message["channel_id"] == channel_id
    assert message["recipient_id"] is None
    assert message["user"]["id"] == "user-alice"
    assert message["user"]["display_name"] == "Alice Liddell"


@pytest.mark.asyncio
async def test_member_subscriber_receives_new_message(
    client: AsyncClient, fanout: FanoutRegistry, alice: dict, bob: dict
) -> None:
    _, channel_id = await _server_with_member(client, alice, bob)
    bob_stream = QueueConnection()
    fanout.subscribe(channel_scope(channel_id), bob_stream, user_id="user-bob")

    response = await client.post(f"/api/channels/{channel_id}/messages", data={"content": "hello"}, headers=alice)
    assert response.status_code == 201

    push = await bob_stream.receive()
    assert push is not None
    assert push.event == "message"
    payload = json.loads(push.data)
    assert payload == response.json()
    assert payload["user"]["id"] == "user-alice"


@pytest.mark.asyncio
async def test_history_newest_first(client: AsyncClient, alice: dict, bob: dict) -> None:
    _, channel_id = await _server_with_member(client, alice, bob)
    for text in ("one", "two", "three"):
        await client.post(f"/api/channels/{channel_id}/messages", data={"content": text}, headers=alice)

    response = await client.get(f"/api/channels/{channel_id}/messages", headers=bob)
    assert response.status_code == 200
    assert [m["content"] for m in response.json()] == ["three", "two", "one"]

    limited = await client.get(f"/api/channels/{channel_id}/messages", params={"limit": 2}, headers=bob)
    assert [m["content"] for m in limited.json()] == ["three", "two"]


@pytest.mark.asyncio
async def test_non_member_denied(client: AsyncClient, alice: dict, carol: dict) -> None:
    server = (await client.post("/api/servers", json={"name": "Guild"}, headers=alice)).json()
    channel_id = server["channels"][0]["id"]

    post = await client.post(f"/api/channels/{channel_id}/messages", data={"content": "hi"}, headers=carol)
    history = await client.get(f"/api/channels/{channel_id}/messages", headers=carol)
    events = await client.get(f"/api/channels/{channel_id}/events", headers=carol)
    assert post.status_code == 403
    assert history.status_code == 403
    assert events.status_code == 403


@pytest.mark.asyncio
async def test_unknown_channel_is_forbidden(client: AsyncClient, alice: dict) -> None:
    response = await client.get("/api/channels/does-not-exist/messages", headers=alice)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_empty_message_rejected(client: AsyncClient, alice: dict) -> None:
    server = (await client.post("/api/servers", json={"name": "Guild"}, headers=alice)).json()
    channel_id = server["channels"][0]["id"]
    response = await client.post(f"/api/channels/{channel_id}/messages", data={"content": "   "}, headers=alice)
    assert response.status_code == 400
    assert response.json()["code"] == "validation_failed"


@pytest.mark.asyncio
async def test_image_message(client: AsyncClient, alice: dict) -> None:
    server = (await client.post("/api/servers", json={"name": "Guild"}, headers=alice)).json()
    channel_id = server["channels"][0]["id"]
    response = await client.post(
        f"/api/channels/{channel_id}/messages",
        files={"image": ("cat.png", b"\x89PNG\r\n\x1a\n0000", "image/png")},
        headers=alice,
    )
    assert response.status_code == 201, response.text
    message = response.json()
    assert message["content"] is None
    assert message["image_url"].startswith("/uploads/")
    assert message["image_url"].endswith(".png")

    served = await client.get(message["image_url"])
    assert served.status_code == 200
    assert served.content == b"\x89PNG\r\n\x1a\n0000"


@pytest.mark.asyncio
async def test_non_image_upload_rejected(client: AsyncClient, alice: dict) -> None:
    server = (await client.post("/api/servers", json={"name": "Guild"}, headers=alice)).json()
    channel_id = server["channels"][0]["id"]
    response = await client.post(
        f"/api/channels/{channel_id}/messages",
        data={"content": "see attached"},
        files={"image": ("notes.txt", b"plain text", "text/plain")},
        headers=alice,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_search_case_insensitive(client: AsyncClient, alice: dict) -> None:
    server = (await client.post("/api/servers", json={"name": "Guild"}, headers=alice)).json()
    channel_id = server["channels"][0]["id"]
    for text in ("Deploy done", "lunch?", "redeploy tomorrow"):
        await client.post(f"/api/channels/{channel_id}/messages", data={"content": text}, headers=alice)

    response = await client.get(f"/api/channels/{channel_id}/search", params={"q": "DEPLOY"}, headers=alice)
    assert response.status_code == 200
    assert [m["content"] for m in response.json()] == ["redeploy tomorrow", "Deploy done"]
