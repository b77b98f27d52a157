"""
Room membership transitions: join, leave and switch-room

Each transition mutates the directory and registry synchronously and only
then sends notifications, so no other handler can observe a half-finished
transition.
"""
import logging
from typing import Optional, Tuple

from .routing import broadcast, send_message
from .state import DEFAULT_NICKNAME, Connection, MemberRecord, RelayContext

logger = logging.getLogger("signal_relay")

DEFAULT_ROOM = "main"


def detach(ctx: RelayContext, conn: Connection) -> Optional[Tuple[str, str]]:
    """
    Remove a connection from its room without notifying anyone.

    Returns (room_id, nickname the room knew it by), or None when the
    connection was not in a room. The room is deleted if it became empty.
    """
    room_id = conn.current_room
    if room_id is None:
        return None

    record = ctx.rooms.discard(room_id, conn.id)
    nickname = record.nickname if record is not None else conn.nickname
    ctx.rooms.remove_if_empty(room_id)
    conn.current_room = None
    return room_id, nickname


def attach(ctx: RelayContext, conn: Connection, room_id: str) -> MemberRecord:
    """Insert (or replace) the connection's record in room_id"""
    record = MemberRecord(id=conn.id, connection=conn, nickname=conn.nickname)
    ctx.rooms.add(room_id, record)
    conn.current_room = room_id
    return record


async def announce_departure(ctx: RelayContext, conn_id: str, room_id: str, nickname: str) -> None:
    if room_id not in ctx.rooms:
        return
    await broadcast(ctx, room_id, {
        "type": "user-left",
        "userId": conn_id,
        "nickname": nickname,
    })
    await broadcast_user_count(ctx, room_id)


async def broadcast_user_count(ctx: RelayContext, room_id: str) -> None:
    await broadcast(ctx, room_id, {
        "type": "user-count",
        "room": room_id,
        "count": len(ctx.rooms.members(room_id)),
    })


async def leave(ctx: RelayContext, conn: Connection) -> bool:
    """Leave the current room; a no-op when not in one"""
    departure = detach(ctx, conn)
    if departure is None:
        return False

    room_id, nickname = departure
    logger.info("👋 %s (%s) left %s", nickname, conn.id, room_id)
    await announce_departure(ctx, conn.id, room_id, nickname)
    return True


async def join(ctx: RelayContext, conn: Connection, room_id: Optional[str],
               nickname: Optional[str], default_room: str = DEFAULT_ROOM) -> MemberRecord:
    """
    Join room_id as nickname, leaving any other room first.

    Existing members get `user-joined`; the joiner gets `joined` with the
    peers already present (itself excluded). Missing values fall back to
    the default room and "Anonymous".
    """
    room_id = room_id or default_room
    conn.nickname = nickname or DEFAULT_NICKNAME
    return await _enter(ctx, conn, room_id)


async def switch_room(ctx: RelayContext, conn: Connection, target_room: Optional[str],
                      nickname: Optional[str] = None, default_room: str = DEFAULT_ROOM) -> MemberRecord:
    """Move to target_room; the nickname is kept unless a new one is given"""
    if nickname:
        conn.nickname = nickname
    return await _enter(ctx, conn, target_room or default_room)


async def _enter(ctx: RelayContext, conn: Connection, room_id: str) -> MemberRecord:
    departure = None
    if conn.current_room is not None and conn.current_room != room_id:
        departure = detach(ctx, conn)

    record = attach(ctx, conn, room_id)
    peers = [r.public() for r in ctx.rooms.members(room_id) if r.id != conn.id]

    if departure is not None:
        old_room, old_nickname = departure
        logger.info("🔀 %s (%s) moved %s → %s", conn.nickname, conn.id, old_room, room_id)
        await announce_departure(ctx, conn.id, old_room, old_nickname)
    else:
        logger.info("✅ %s (%s) joined %s", conn.nickname, conn.id, room_id)

    await broadcast(ctx, room_id, {
        "type": "user-joined",
        "user": record.public(),
    }, exclude=conn.id)

    await send_message(conn, {
        "type": "joined",
        "room": room_id,
        "roomInfo": ctx.room_info(room_id).to_dict(),
        "users": peers,
        "count": len(peers) + 1,
    })
    await broadcast_user_count(ctx, room_id)
    return record
