"""
Environment-driven configuration and the static room catalogue
"""
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from .state import DEFAULT_ICON, RoomInfo

logger = logging.getLogger("signal_relay")

PORT = int(os.environ.get("PORT", 8080))
SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
SERVER_NAME = os.environ.get("SERVER_NAME", "Signal Relay")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

DEFAULT_ROOM = os.environ.get("DEFAULT_ROOM", "main")

SWEEP_INTERVAL = float(os.environ.get("SWEEP_INTERVAL", 300))
HEARTBEAT_INTERVAL = float(os.environ.get("HEARTBEAT_INTERVAL", 30))
RATE_LIMIT_PER_MINUTE = int(os.environ.get("RATE_LIMIT_PER_MINUTE", 100))
ECHO_TEXT_MESSAGES = os.environ.get("ECHO_TEXT_MESSAGES", "true").lower() in ("1", "true", "yes", "on")

ROOMS_FILE = os.environ.get("RELAY_ROOMS_FILE")

BUILTIN_ROOMS = [
    RoomInfo("main", "Main Hall", "🏰", "General voice lobby"),
    RoomInfo("games", "Games", "🎮", "Squad up before a match"),
    RoomInfo("music", "Music", "🎵", "Listening sessions"),
    RoomInfo("afk", "AFK", "💤", "Away from keyboard"),
]


def load_room_catalog(path: Optional[str] = None) -> Dict[str, RoomInfo]:
    """
    Load the configured room catalogue.

    The file, when given, holds a JSON list of objects with `id`, `name`,
    `icon` and `description`. A missing or unreadable file falls back to the
    built-in rooms.
    """
    path = path if path is not None else ROOMS_FILE
    if not path:
        return {info.id: info for info in BUILTIN_ROOMS}

    try:
        entries = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error("Failed to load room catalogue from %s: %s", path, e)
        return {info.id: info for info in BUILTIN_ROOMS}

    catalog = {}
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("id"):
            logger.warning("Skipping invalid room entry: %r", entry)
            continue
        room_id = str(entry["id"])
        catalog[room_id] = RoomInfo(
            id=room_id,
            name=entry.get("name") or room_id,
            icon=entry.get("icon") or DEFAULT_ICON,
            description=entry.get("description") or "",
        )
    logger.info("Loaded %d configured rooms from %s", len(catalog), path)
    return catalog
