from dataclasses import dataclass
from typing import Any

from chatrooms.application.errors import ErrorResult
from chatrooms.domain.models import Room


@dataclass(frozen=True)
class RoomResult:
    room: Room

    def as_dict(self) -> dict[str, Any]:
        return {"room": self.room.as_dict()}


@dataclass(frozen=True)
class RoomsResult:
    rooms: list[Room]

    def as_dict(self) -> dict[str, Any]:
        return {"rooms": [room.as_dict() for room in self.rooms]}


MembershipResult = RoomResult | RoomsResult | ErrorResult
