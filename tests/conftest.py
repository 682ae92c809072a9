import itertools
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from testcontainers.redis import RedisContainer

from chatrooms.application.errors import StaleRoomError
from chatrooms.domain.filters import room_matches
from chatrooms.domain.models import Room
from chatrooms.main import app_factory


@pytest.fixture(scope="session")
def redis_url():
    with RedisContainer("redis:7-alpine") as c:
        host = c.get_container_host_ip()
        port = c.get_exposed_port(6379)
        yield f"redis://{host}:{port}/0"


@pytest.fixture
def app(redis_url):
    return app_factory(redis_url)


@pytest.fixture
def client(app):
    with TestClient(app) as tc:
        yield tc


class FakeWebSocket:
    def __init__(self) -> None:
        self.state = SimpleNamespace()
        self.sent: list[object] = []

    async def accept(self) -> None:
        return None

    async def send_json(self, payload: object) -> None:
        self.sent.append(payload)


class InMemoryRoomStore:
    """Dict-backed store with a clock that ticks one second per write."""

    def __init__(self) -> None:
        self.rooms: dict[int, Room] = {}
        self._ids = itertools.count(1)
        self._ticks = itertools.count()
        self._epoch = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        return self._epoch + timedelta(seconds=next(self._ticks))

    async def find_all(self, room_filter, skip=0, limit=None, sort=None):
        field, direction = sort or ("updated_at", "desc")
        rooms = [r for r in self.rooms.values() if room_matches(r, room_filter)]
        rooms.sort(key=lambda r: getattr(r, field), reverse=direction == "desc")
        end = None if limit is None else skip + limit
        return rooms[skip:end]

    async def find_one(self, room_filter):
        for room in self.rooms.values():
            if room_matches(room, room_filter):
                return room
        return None

    async def create(self, fields):
        now = self._now()
        room = Room(
            id=next(self._ids),
            room_name=fields["room_name"],
            participants=tuple(fields["participants"]),
            created_by_user=fields["created_by_user"],
            created_at=now,
            updated_at=now,
        )
        self.rooms[room.id] = room
        return room

    async def update(self, room, fields):
        current = self.rooms[room.id]
        if current.version != room.version:
            raise StaleRoomError(room.id, room.version)
        updated = current.with_fields(
            **fields, version=current.version + 1, updated_at=self._now()
        )
        self.rooms[room.id] = updated
        return updated


@pytest.fixture
def memory_store():
    return InMemoryRoomStore()


@pytest.fixture
def make_websocket():
    return FakeWebSocket
