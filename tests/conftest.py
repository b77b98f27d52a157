import json

import pytest

from signal_relay.state import Connection, RelayContext, RoomInfo


class FakeSocket:
    """Stands in for aiohttp's WebSocketResponse: `closed` + async `send_str`"""

    def __init__(self):
        self.closed = False
        self.sent = []

    async def send_str(self, data):
        if self.closed:
            raise ConnectionResetError("socket closed")
        self.sent.append(json.loads(data))

    def of_type(self, msg_type):
        return [m for m in self.sent if m["type"] == msg_type]

    def types(self):
        return [m["type"] for m in self.sent]


@pytest.fixture
def ctx():
    return RelayContext({"main": RoomInfo("main", "Main Hall", "🏰", "General voice lobby")})


@pytest.fixture
def connect(ctx):
    counter = iter(range(1, 1000))

    def _connect(conn_id=None):
        conn = Connection(id=conn_id or f"conn-{next(counter)}", ws=FakeSocket())
        ctx.connections.add(conn)
        return conn

    return _connect
