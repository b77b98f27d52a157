#!/usr/bin/env python3
"""
Signal Relay - Entry Point
WebSocket rendezvous relay + rate limiting + stale member sweeper
"""
import logging
import socket
import time
from collections import defaultdict
from typing import Dict, Optional

from aiohttp import web

from signal_relay import config
from signal_relay.api import api_health, api_rooms, close_websockets, index, ws_relay
from signal_relay.protocol import RelayOptions
from signal_relay.state import RelayContext, RoomInfo
from signal_relay.sweeper import start_sweeper, stop_sweeper

logger = logging.getLogger("signal_relay")


def rate_limit_middleware(limit: int):
    """Simple per-IP rate limiting: `limit` requests per minute"""
    store = defaultdict(list)

    @web.middleware
    async def middleware(request, handler):
        # WebSocket sessions are long-lived; only plain HTTP is limited
        if request.path == "/ws":
            return await handler(request)

        ip = request.remote
        now = time.time()
        store[ip] = [t for t in store[ip] if now - t < 60]

        if len(store[ip]) >= limit:
            logger.warning(f"Rate limit exceeded for {ip}")
            return web.json_response(
                {"ok": False, "error": "Rate limit exceeded"},
                status=429
            )

        store[ip].append(now)
        return await handler(request)

    return middleware


def create_app(catalog: Optional[Dict[str, RoomInfo]] = None,
               sweep_interval: float = config.SWEEP_INTERVAL,
               heartbeat_interval: float = config.HEARTBEAT_INTERVAL,
               rate_limit: int = config.RATE_LIMIT_PER_MINUTE,
               default_room: str = config.DEFAULT_ROOM,
               echo_text: bool = config.ECHO_TEXT_MESSAGES) -> web.Application:
    """Create and configure the aiohttp application"""
    app = web.Application(middlewares=[rate_limit_middleware(rate_limit)])

    app["relay"] = RelayContext(catalog if catalog is not None else config.load_room_catalog())
    app["relay_options"] = RelayOptions(default_room=default_room, echo_text=echo_text)
    app["server_name"] = config.SERVER_NAME
    app["sweep_interval"] = sweep_interval
    app["heartbeat_interval"] = heartbeat_interval
    app["websockets"] = set()

    app.router.add_get("/", index)
    app.router.add_get("/health", api_health)
    app.router.add_get("/rooms", api_rooms)
    app.router.add_get("/ws", ws_relay)

    app.on_startup.append(start_sweeper)
    app.on_shutdown.append(close_websockets)
    app.on_cleanup.append(stop_sweeper)

    logger.info("📡 Signal relay ready • %d configured rooms", len(app["relay"].catalog))
    return app


def get_local_ip():
    """Get local network IP address"""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except Exception:
        return "localhost"


def main():
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    app = create_app()
    local_ip = get_local_ip()

    logger.info(f"🚀 Starting server on {config.SERVER_HOST}:{config.PORT}")
    logger.info(f"🌍 Access at: http://{local_ip}:{config.PORT}")
    logger.info(f"💬 WebSocket: ws://{local_ip}:{config.PORT}/ws")

    web.run_app(app, host=config.SERVER_HOST, port=config.PORT)


if __name__ == "__main__":
    main()
