"""
Inbound message decoding and dispatch
"""
import json
import logging
from typing import Optional

from . import membership
from .routing import broadcast, send_message, unicast_to_peer
from .state import Connection, RelayContext
from .utils import now_ms

logger = logging.getLogger("signal_relay")

NEGOTIATION_TYPES = ("offer", "answer", "ice-candidate")


class MalformedMessage(ValueError):
    """Frame that cannot be decoded as a message envelope"""


class RelayOptions:
    """Per-application switches used while dispatching"""

    def __init__(self, default_room: str = membership.DEFAULT_ROOM, echo_text: bool = True):
        self.default_room = default_room
        self.echo_text = echo_text


def decode_frame(raw) -> dict:
    if isinstance(raw, (bytes, bytearray)):
        raise MalformedMessage("Binary frames are not supported")
    try:
        msg = json.loads(raw)
    except (TypeError, ValueError):
        raise MalformedMessage("Invalid JSON")
    if not isinstance(msg, dict):
        raise MalformedMessage("Message must be a JSON object")
    if not isinstance(msg.get("type"), str):
        raise MalformedMessage("Message type is required")
    return msg


async def send_error(conn: Connection, message: str) -> None:
    await send_message(conn, {"type": "error", "message": message})


def _text(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


async def handle_frame(ctx: RelayContext, conn: Connection, raw,
                       options: Optional[RelayOptions] = None) -> None:
    """Decode one frame and dispatch it; malformed frames get an `error` reply"""
    try:
        msg = decode_frame(raw)
    except MalformedMessage as e:
        logger.warning(f"Malformed frame from {conn.id}: {e}")
        await send_error(conn, str(e))
        return

    try:
        await dispatch(ctx, conn, msg, options or RelayOptions())
    except Exception:
        logger.exception(f"Error handling {msg['type']} from {conn.id}")
        await send_error(conn, "Internal server error")


async def dispatch(ctx: RelayContext, conn: Connection, msg: dict, options: RelayOptions) -> None:
    msg_type = msg["type"]
    logger.debug(f"📥 {conn.id} → {msg_type}")

    if msg_type == "join":
        await membership.join(ctx, conn, _text(msg.get("room")), _text(msg.get("nickname")),
                              default_room=options.default_room)

    elif msg_type == "leave":
        await membership.leave(ctx, conn)

    elif msg_type == "switch-room":
        await membership.switch_room(ctx, conn, _text(msg.get("targetRoom")), _text(msg.get("nickname")),
                                     default_room=options.default_room)

    elif msg_type in NEGOTIATION_TYPES:
        target_id = msg.get("targetId")
        if not target_id:
            logger.debug(f"{msg_type} from {conn.id} has no targetId")
            return
        await unicast_to_peer(ctx, conn, target_id, msg)

    elif msg_type == "mute-state":
        if msg.get("targetId"):
            await unicast_to_peer(ctx, conn, msg["targetId"], msg)
        elif conn.current_room is not None:
            relayed = dict(msg, fromId=conn.id, fromNickname=conn.nickname)
            await broadcast(ctx, conn.current_room, relayed, exclude=conn.id)

    elif msg_type == "text-message":
        await relay_text(ctx, conn, msg, options.echo_text)

    elif msg_type == "ping":
        await send_message(conn, {"type": "pong", "timestamp": now_ms()})

    else:
        logger.warning(f"Unknown message type from {conn.id}: {msg_type!r}")


async def relay_text(ctx: RelayContext, conn: Connection, msg: dict, echo: bool) -> None:
    text = msg.get("message")
    if conn.current_room is None or not isinstance(text, str) or not text:
        logger.debug(f"Ignoring text-message from {conn.id}")
        return

    await broadcast(ctx, conn.current_room, {
        "type": "text-message",
        "message": text,
        "fromId": conn.id,
        "fromNickname": conn.nickname,
        "room": conn.current_room,
        "timestamp": now_ms(),
    }, exclude=None if echo else conn.id)
