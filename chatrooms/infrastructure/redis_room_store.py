import inspect
import json
from datetime import datetime, timezone
from typing import Any, Awaitable, Mapping, Sequence, TypeVar, cast

from redis.asyncio.client import Redis
from redis.exceptions import WatchError

from chatrooms.application.errors import StaleRoomError
from chatrooms.application.ports import SortOrder
from chatrooms.domain.filters import RoomFilter, room_matches
from chatrooms.domain.models import Room

T = TypeVar("T")
IMMUTABLE_FIELDS = frozenset({"id", "version", "created_at", "updated_at"})


async def _await(x: T | Awaitable[T]) -> T:
    if inspect.isawaitable(x):
        return await cast(Awaitable[T], x)
    return x


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _dump(room: Room) -> str:
    return json.dumps(room.as_dict())


class RedisRoomStore:
    """Rooms as JSON documents plus per-user indexes scored by ``updated_at``.

    Keys:
        ``rooms:seq``            id counter
        ``room:{id}``            room document
        ``rooms:index``          every room id
        ``user:{user_id}:rooms`` ids of rooms the user participates in

    An index can briefly outlive a document it points to; such entries come
    back from ``find_all`` as ``None``.
    """

    def __init__(self, r: Redis):
        self._r = r

    def _seq_key(self) -> str:
        return "rooms:seq"

    def _index_key(self) -> str:
        return "rooms:index"

    def _room_key(self, room_id: int | str) -> str:
        return f"room:{room_id}"

    def _user_rooms_key(self, user_id: int) -> str:
        return f"user:{user_id}:rooms"

    def _candidates_key(self, room_filter: RoomFilter) -> str:
        participants = room_filter.get("participants")
        if participants is None:
            return self._index_key()
        if isinstance(participants, Sequence):
            # an exact match must list its first participant
            if not participants:
                return self._index_key()
            return self._user_rooms_key(participants[0])
        return self._user_rooms_key(participants)

    async def _load(self, room_id: int | str) -> Room | None:
        raw = await _await(self._r.get(self._room_key(room_id)))
        if raw is None:
            return None
        return Room.from_dict(json.loads(raw))

    async def _load_many(self, room_ids: list[str]) -> list[Room | None]:
        if not room_ids:
            return []
        raws = await _await(self._r.mget([self._room_key(rid) for rid in room_ids]))
        return [None if raw is None else Room.from_dict(json.loads(raw)) for raw in raws]

    async def find_all(
        self,
        room_filter: RoomFilter,
        skip: int = 0,
        limit: int | None = None,
        sort: SortOrder | None = None,
    ) -> list[Room | None]:
        field, direction = sort or ("updated_at", "desc")
        room_ids = await _await(
            self._r.zrange(
                self._candidates_key(room_filter), 0, -1, desc=direction == "desc"
            )
        )
        loaded = await self._load_many(list(room_ids))
        rooms: list[Room | None] = [
            room for room in loaded if room is None or room_matches(room, room_filter)
        ]
        if field != "updated_at":
            present = sorted(
                (room for room in rooms if room is not None),
                key=lambda room: getattr(room, field),
                reverse=direction == "desc",
            )
            rooms = [*present, *([None] * (len(rooms) - len(present)))]
        end = None if limit is None else skip + limit
        return rooms[skip:end]

    async def find_one(self, room_filter: RoomFilter) -> Room | None:
        if "id" in room_filter:
            room = await self._load(room_filter["id"])
            if room is not None and room_matches(room, room_filter):
                return room
            return None
        for room in await self.find_all(room_filter):
            if room is not None:
                return room
        return None

    async def create(self, fields: Mapping[str, Any]) -> Room:
        room_id = await _await(self._r.incr(self._seq_key()))
        created_at = fields.get("created_at") or _now()
        room = Room(
            id=int(room_id),
            room_name=fields["room_name"],
            participants=tuple(fields["participants"]),
            created_by_user=fields["created_by_user"],
            created_at=created_at,
            updated_at=created_at,
        )
        score = {str(room.id): room.updated_at.timestamp()}
        async with self._r.pipeline(transaction=True) as pipe:
            pipe.set(self._room_key(room.id), _dump(room))
            pipe.zadd(self._index_key(), score)
            for user_id in set(room.participants):
                pipe.zadd(self._user_rooms_key(user_id), score)
            await pipe.execute()
        return room

    async def update(self, room: Room, fields: Mapping[str, Any]) -> Room:
        """Apply ``fields`` if the stored room is still at ``room.version``."""
        changes = {k: v for k, v in fields.items() if k not in IMMUTABLE_FIELDS}
        key = self._room_key(room.id)
        async with self._r.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                raw = await pipe.get(key)
                if raw is None:
                    raise KeyError(room.id)
                current = Room.from_dict(json.loads(raw))
                if current.version != room.version:
                    raise StaleRoomError(room.id, room.version)
                updated = current.with_fields(
                    **changes, version=current.version + 1, updated_at=_now()
                )
                score = {str(room.id): updated.updated_at.timestamp()}

                pipe.multi()
                pipe.set(key, _dump(updated))
                pipe.zadd(self._index_key(), score)
                for user_id in set(current.participants) - set(updated.participants):
                    pipe.zrem(self._user_rooms_key(user_id), str(room.id))
                for user_id in set(updated.participants):
                    pipe.zadd(self._user_rooms_key(user_id), score)
                await pipe.execute()
            except WatchError as exc:
                raise StaleRoomError(room.id, room.version) from exc
        return updated
