"""
Delivery primitives: send to one connection, relay to a peer by id,
broadcast to a room. All delivery is best-effort.
"""
import json
import logging
from typing import Optional

from .state import Connection, RelayContext

logger = logging.getLogger("signal_relay")


async def send_raw(conn: Connection, raw: str) -> bool:
    """Send an already-encoded frame; closed or failing transports are skipped"""
    if not conn.is_open:
        return False
    try:
        await conn.ws.send_str(raw)
    except Exception as e:
        logger.debug(f"Failed to send to {conn.id}: {e}")
        return False
    return True


async def send_message(conn: Connection, message: dict) -> bool:
    return await send_raw(conn, json.dumps(message))


async def unicast_to_peer(ctx: RelayContext, sender: Connection, target_id: str, payload: dict) -> bool:
    """
    Relay a negotiation payload to one peer in the sender's room.

    The payload is forwarded verbatim apart from the stamped `fromId` and
    `fromNickname`. A target that is unknown, in another room or already
    closed means the message is dropped without telling the sender.
    """
    room_id = sender.current_room
    if room_id is None:
        logger.debug(f"Dropping {payload.get('type')} from {sender.id}: not in a room")
        return False

    record = ctx.rooms.find(room_id, target_id)
    if record is None:
        logger.debug(f"Dropping {payload.get('type')} from {sender.id}: {target_id} not in {room_id}")
        return False

    message = dict(payload)
    message["fromId"] = sender.id
    message["fromNickname"] = sender.nickname
    return await send_message(record.connection, message)


async def broadcast(ctx: RelayContext, room_id: str, message: dict,
                    exclude: Optional[str] = None) -> int:
    """Send to every open member of a room except `exclude`; returns delivered count"""
    recipients = [
        record.connection for record in ctx.rooms.members(room_id)
        if record.id != exclude and record.connection.is_open
    ]
    if not recipients:
        return 0

    raw = json.dumps(message)
    delivered = 0
    for conn in recipients:
        if await send_raw(conn, raw):
            delivered += 1
    return delivered
