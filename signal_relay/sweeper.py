"""
Periodic consistency pass: evict members whose transport already closed
but whose close handler never ran
"""
import asyncio
import logging
from typing import List, Tuple

from aiohttp import web

from .membership import announce_departure
from .state import MemberRecord, RelayContext

logger = logging.getLogger("signal_relay")


def sweep(ctx: RelayContext) -> List[Tuple[str, MemberRecord]]:
    """Drop closed members from every room and delete rooms left empty"""
    evicted = []
    for room_id in ctx.rooms.room_ids():
        for record in ctx.rooms.retain(room_id, lambda r: r.connection.is_open):
            conn = record.connection
            if conn.current_room == room_id:
                conn.current_room = None
            ctx.connections.remove(conn.id)
            evicted.append((room_id, record))
        ctx.rooms.remove_if_empty(room_id)

    for conn in ctx.connections:
        if not conn.is_open and conn.current_room is None:
            ctx.connections.remove(conn.id)
    return evicted


async def sweep_and_notify(ctx: RelayContext) -> int:
    evicted = sweep(ctx)
    for room_id, record in evicted:
        logger.info(f"🧹 Evicted stale member {record.nickname} ({record.id}) from {room_id}")
        await announce_departure(ctx, record.id, room_id, record.nickname)
    return len(evicted)


async def sweep_forever(ctx: RelayContext, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await sweep_and_notify(ctx)
        except Exception as e:
            logger.error(f"Sweeper error: {e}")


async def start_sweeper(app: web.Application) -> None:
    app["sweeper_task"] = asyncio.create_task(
        sweep_forever(app["relay"], app["sweep_interval"])
    )


async def stop_sweeper(app: web.Application) -> None:
    task = app.get("sweeper_task")
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
