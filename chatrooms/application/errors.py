from dataclasses import dataclass
from typing import Any

NOT_FOUND = "Not found!"
NOT_PARTICIPANT = "Not part of this room!"
INTERNAL_ERROR = "Internal server error!"


class StaleRoomError(Exception):
    """Raised by a store when a room changed since it was read."""

    def __init__(self, room_id: int, expected_version: int):
        super().__init__(f"room {room_id} is no longer at version {expected_version}")
        self.room_id = room_id
        self.expected_version = expected_version


@dataclass(frozen=True)
class ErrorResult:
    error: str
    status: int

    def as_dict(self) -> dict[str, Any]:
        return {"error": self.error, "status": self.status}


def not_found() -> ErrorResult:
    return ErrorResult(NOT_FOUND, 404)


def not_participant() -> ErrorResult:
    return ErrorResult(NOT_PARTICIPANT, 409)


def internal_error() -> ErrorResult:
    return ErrorResult(INTERNAL_ERROR, 500)
