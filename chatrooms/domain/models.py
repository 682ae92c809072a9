from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

UserId = int


def room_group(room_id: int) -> str:
    return f"room_{room_id}"


@dataclass(frozen=True)
class Room:
    id: int
    room_name: str
    participants: tuple[UserId, ...]
    created_by_user: UserId
    created_at: datetime
    updated_at: datetime
    version: int = 0

    def with_fields(self, **fields: Any) -> "Room":
        if "participants" in fields:
            fields["participants"] = tuple(fields["participants"])
        return replace(self, **fields)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "room_name": self.room_name,
            "participants": list(self.participants),
            "created_by_user": self.created_by_user,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Room":
        return cls(
            id=int(data["id"]),
            room_name=data["room_name"],
            participants=tuple(int(p) for p in data["participants"]),
            created_by_user=int(data["created_by_user"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            version=int(data.get("version", 0)),
        )


@dataclass(frozen=True)
class ActiveSession:
    user_id: UserId
    session: str
