from typing import Any, Literal, Mapping, Protocol

from chatrooms.domain.filters import RoomFilter
from chatrooms.domain.models import ActiveSession, Room

SortOrder = tuple[str, Literal["asc", "desc"]]


class RoomStore(Protocol):
    async def find_all(
        self,
        room_filter: RoomFilter,
        skip: int = 0,
        limit: int | None = None,
        sort: SortOrder | None = None,
    ) -> list[Room | None]: ...

    async def find_one(self, room_filter: RoomFilter) -> Room | None: ...

    async def create(self, fields: Mapping[str, Any]) -> Room: ...

    async def update(self, room: Room, fields: Mapping[str, Any]) -> Room: ...


class SessionRegistry(Protocol):
    async def list_active_sessions(self) -> list[ActiveSession]: ...

    async def add_to_group(self, session: str, group_name: str) -> None: ...
