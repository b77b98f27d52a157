import asyncio

import pytest

from main import create_app
from signal_relay.state import RoomInfo

CATALOG = {
    "main": RoomInfo("main", "Main Hall", "🏰", "General voice lobby"),
    "games": RoomInfo("games", "Games", "🎮", ""),
}


@pytest.fixture
async def client(aiohttp_client):
    return await aiohttp_client(create_app(catalog=CATALOG, sweep_interval=3600, heartbeat_interval=0))


async def receive(ws, msg_type, timeout=2.0):
    """Read frames until one of msg_type arrives"""
    while True:
        msg = await asyncio.wait_for(ws.receive_json(), timeout)
        if msg["type"] == msg_type:
            return msg


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status == 200
    data = await resp.json()
    assert data["status"] == "ok"
    assert data["rooms"] == 0
    assert data["connections"] == 0
    assert data["uptime"] >= 0


async def test_index_page(client):
    resp = await client.get("/")
    assert resp.status == 200
    assert resp.content_type == "text/html"
    body = await resp.text()
    assert "/ws" in body
    assert "ONLINE" in body


async def test_rooms_lists_configured_and_active(client):
    ws = await client.ws_connect("/ws")
    await ws.send_json({"type": "join", "room": "side", "nickname": "Alice"})
    await receive(ws, "joined")

    resp = await client.get("/rooms")
    data = await resp.json()
    rooms = {r["id"]: r for r in data["rooms"]}
    assert rooms["main"]["users"] == 0
    assert rooms["main"]["configured"] is True
    assert rooms["side"]["users"] == 1
    assert rooms["side"]["configured"] is False
    assert resp.headers["Cache-Control"] == "max-age=5"

    await ws.close()


async def test_rooms_etag(client):
    resp = await client.get("/rooms")
    etag = resp.headers["ETag"]
    resp = await client.get("/rooms", headers={"If-None-Match": etag})
    assert resp.status == 304


async def test_join_offer_and_disconnect(client):
    x = await client.ws_connect("/ws")
    await x.send_json({"type": "join", "room": "main", "nickname": "Alice"})
    joined_x = await receive(x, "joined")
    assert joined_x["users"] == []
    assert joined_x["roomInfo"]["name"] == "Main Hall"

    y = await client.ws_connect("/ws")
    await y.send_json({"type": "join", "room": "main", "nickname": "Bob"})
    joined_y = await receive(y, "joined")
    x_id = joined_y["users"][0]["id"]
    assert joined_y["users"][0]["nickname"] == "Alice"

    user_joined = await receive(x, "user-joined")
    y_id = user_joined["user"]["id"]
    assert user_joined["user"]["nickname"] == "Bob"

    await x.send_json({"type": "offer", "targetId": y_id, "sdp": "v=0"})
    offer = await receive(y, "offer")
    assert offer["sdp"] == "v=0"
    assert offer["fromId"] == x_id
    assert offer["fromNickname"] == "Alice"

    await x.close()
    left = await receive(y, "user-left")
    assert left == {"type": "user-left", "userId": x_id, "nickname": "Alice"}

    await y.close()


async def test_last_disconnect_removes_room(client):
    ws = await client.ws_connect("/ws")
    await ws.send_json({"type": "join", "room": "main", "nickname": "Alice"})
    await receive(ws, "joined")
    await ws.close()

    for _ in range(50):
        data = await (await client.get("/health")).json()
        if data["connections"] == 0:
            break
        await asyncio.sleep(0.01)
    assert data["rooms"] == 0
    assert data["connections"] == 0


async def test_malformed_json_keeps_connection_open(client):
    ws = await client.ws_connect("/ws")
    await ws.send_str("{not json")
    error = await receive(ws, "error")
    assert error["message"] == "Invalid JSON"

    await ws.send_json({"type": "ping"})
    pong = await receive(ws, "pong")
    assert "timestamp" in pong
    await ws.close()


async def test_binary_frame_is_rejected(client):
    ws = await client.ws_connect("/ws")
    await ws.send_bytes(b"\x00\x01")
    error = await receive(ws, "error")
    assert error["message"] == "Binary frames are not supported"
    await ws.close()


async def test_rate_limit(aiohttp_client):
    client = await aiohttp_client(create_app(catalog=CATALOG, sweep_interval=3600, rate_limit=2))
    assert (await client.get("/health")).status == 200
    assert (await client.get("/health")).status == 200
    resp = await client.get("/health")
    assert resp.status == 429
    assert (await resp.json())["error"] == "Rate limit exceeded"
