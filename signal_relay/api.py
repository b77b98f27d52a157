"""
HTTP and WebSocket handlers for the signal relay
Info page + health/rooms status + the /ws relay endpoint
"""
import hashlib
import html
import json
import logging

from aiohttp import WSCloseCode, web

from . import membership
from .protocol import handle_frame, send_error
from .state import Connection, RelayContext
from .utils import generate_connection_id

logger = logging.getLogger("signal_relay")

# ============================================================
# WEBSOCKET RELAY
# ============================================================

async def ws_relay(request: web.Request) -> web.WebSocketResponse:
    """One WebSocket session: register, dispatch frames in order, leave on close"""
    app = request.app
    ctx: RelayContext = app["relay"]

    ws = web.WebSocketResponse(heartbeat=app["heartbeat_interval"] or None)
    await ws.prepare(request)

    conn = Connection(id=generate_connection_id(), ws=ws, remote=request.remote)
    ctx.connections.add(conn)
    app["websockets"].add(ws)
    logger.info(f"🔌 New connection: {conn.id} | IP: {conn.remote} (total: {len(ctx.connections)})")

    try:
        async for msg in ws:
            if msg.type == web.WSMsgType.TEXT:
                await handle_frame(ctx, conn, msg.data, app["relay_options"])
            elif msg.type == web.WSMsgType.BINARY:
                await send_error(conn, "Binary frames are not supported")
            elif msg.type == web.WSMsgType.ERROR:
                logger.error(f"💥 WebSocket error ({conn.id}): {ws.exception()}")
    finally:
        await membership.leave(ctx, conn)
        ctx.connections.remove(conn.id)
        app["websockets"].discard(ws)
        logger.info(f"📴 Connection closed: {conn.id} (remaining: {len(ctx.connections)})")

    return ws


async def close_websockets(app: web.Application) -> None:
    """on_shutdown hook: close every open session so handlers can unwind"""
    for ws in set(app["websockets"]):
        await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")

# ============================================================
# STATUS
# ============================================================

INDEX_TEMPLATE = """<!DOCTYPE html>
<html>
<head><title>{name}</title></head>
<body style="background:#0a0a0f;color:#e0e0ff;font-family:monospace;padding:2rem">
  <h1>✅ {name}</h1>
  <p>WebSocket: <code>{ws_url}</code></p>
  <p>Rooms: <b>{rooms}</b> · Connections: <b>{connections}</b></p>
  <p>Status: <span style="color:#43b581">ONLINE</span></p>
</body>
</html>
"""


def websocket_url(request: web.Request) -> str:
    scheme = "wss" if request.secure else "ws"
    return f"{scheme}://{request.host}/ws"


async def index(request: web.Request) -> web.Response:
    ctx: RelayContext = request.app["relay"]
    body = INDEX_TEMPLATE.format(
        name=html.escape(request.app["server_name"]),
        ws_url=html.escape(websocket_url(request)),
        rooms=len(ctx.rooms),
        connections=len(ctx.connections),
    )
    return web.Response(text=body, content_type="text/html")


async def api_health(request: web.Request) -> web.Response:
    ctx: RelayContext = request.app["relay"]
    return web.json_response({
        "status": "ok",
        "uptime": round(ctx.uptime(), 3),
        "rooms": len(ctx.rooms),
        "connections": len(ctx.connections),
    })


def get_rooms_data(ctx: RelayContext) -> list:
    """Configured rooms first (even when empty), then ad-hoc active rooms"""
    items = []
    for room_id, info in ctx.catalog.items():
        items.append(dict(info.to_dict(), users=len(ctx.rooms.members(room_id)), configured=True))

    for room_id in ctx.rooms.room_ids():
        if room_id in ctx.catalog:
            continue
        info = ctx.room_info(room_id)
        items.append(dict(info.to_dict(), users=len(ctx.rooms.members(room_id)), configured=False))
    return items


async def api_rooms(request: web.Request) -> web.Response:
    """List rooms with ETag caching"""
    items = get_rooms_data(request.app["relay"])

    content = json.dumps(items, sort_keys=True)
    etag = hashlib.md5(content.encode()).hexdigest()

    if request.headers.get("If-None-Match") == etag:
        return web.Response(status=304)

    response = web.json_response({"ok": True, "rooms": items})
    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = "max-age=5"
    return response
