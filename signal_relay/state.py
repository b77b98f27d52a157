"""
In-memory state for connections and rooms
Connection registry + room directory, owned by a single RelayContext
"""
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

DEFAULT_NICKNAME = "Anonymous"
DEFAULT_ICON = "💬"


@dataclass(frozen=True)
class RoomInfo:
    """Display metadata for a room"""
    id: str
    name: str
    icon: str = DEFAULT_ICON
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
        }


@dataclass(eq=False)
class Connection:
    """One live WebSocket session"""
    id: str
    ws: Any
    nickname: str = DEFAULT_NICKNAME
    current_room: Optional[str] = None
    remote: Optional[str] = None
    connected_at: float = field(default_factory=time.time)

    @property
    def is_open(self) -> bool:
        return not self.ws.closed


@dataclass
class MemberRecord:
    """A connection's slot inside a room; nickname is captured at join time"""
    id: str
    connection: Connection
    nickname: str

    def public(self) -> dict:
        return {"id": self.id, "nickname": self.nickname}


class ConnectionRegistry:
    """connection_id -> Connection"""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def add(self, conn: Connection) -> None:
        self._connections[conn.id] = conn

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def remove(self, connection_id: str) -> Optional[Connection]:
        return self._connections.pop(connection_id, None)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[Connection]:
        return iter(list(self._connections.values()))


class RoomDirectory:
    """
    room_id -> ordered list of MemberRecord

    A room only exists while it has members: it is created by the first
    insert and removed by `remove_if_empty` once the last record is gone.
    """

    def __init__(self):
        self._rooms: Dict[str, List[MemberRecord]] = {}

    def get_or_create(self, room_id: str) -> List[MemberRecord]:
        return self._rooms.setdefault(room_id, [])

    def remove_if_empty(self, room_id: str) -> bool:
        if room_id in self._rooms and not self._rooms[room_id]:
            del self._rooms[room_id]
            return True
        return False

    def members(self, room_id: str) -> List[MemberRecord]:
        return list(self._rooms.get(room_id, ()))

    def find(self, room_id: str, connection_id: str) -> Optional[MemberRecord]:
        for record in self._rooms.get(room_id, ()):
            if record.id == connection_id:
                return record
        return None

    def add(self, room_id: str, record: MemberRecord) -> None:
        """Insert a record, replacing any existing one for the same connection"""
        members = self.get_or_create(room_id)
        for i, existing in enumerate(members):
            if existing.id == record.id:
                members[i] = record
                return
        members.append(record)

    def discard(self, room_id: str, connection_id: str) -> Optional[MemberRecord]:
        members = self._rooms.get(room_id)
        if not members:
            return None
        for i, record in enumerate(members):
            if record.id == connection_id:
                return members.pop(i)
        return None

    def retain(self, room_id: str, predicate) -> List[MemberRecord]:
        """Keep only records matching predicate; return the dropped ones"""
        if room_id not in self._rooms:
            return []
        kept, dropped = [], []
        for record in self._rooms[room_id]:
            (kept if predicate(record) else dropped).append(record)
        self._rooms[room_id] = kept
        return dropped

    def room_ids(self) -> List[str]:
        return list(self._rooms)

    def total_members(self) -> int:
        return sum(len(m) for m in self._rooms.values())

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)


class RelayContext:
    """Process-wide relay state: registry, directory and room catalogue"""

    def __init__(self, catalog: Optional[Dict[str, RoomInfo]] = None):
        self.connections = ConnectionRegistry()
        self.rooms = RoomDirectory()
        self.catalog: Dict[str, RoomInfo] = dict(catalog or {})
        self.started_at = time.time()

    def room_info(self, room_id: str) -> RoomInfo:
        info = self.catalog.get(room_id)
        if info is None:
            info = RoomInfo(id=room_id, name=room_id)
        return info

    def uptime(self) -> float:
        return time.time() - self.started_at
