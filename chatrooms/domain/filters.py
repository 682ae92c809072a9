from collections.abc import Mapping, Sequence
from typing import Any

from chatrooms.domain.models import Room

RoomFilter = Mapping[str, Any]


def _field_matches(room: Room, key: str, expected: Any) -> bool:
    actual = getattr(room, key)
    if key == "participants":
        if isinstance(expected, Sequence) and not isinstance(expected, str):
            return tuple(actual) == tuple(expected)
        return expected in actual
    return actual == expected


def room_matches(room: Room, room_filter: RoomFilter) -> bool:
    """Match a room against a store filter.

    A scalar ``participants`` value means "contains", a sequence means the
    participant list must be equal in the same order. Other keys compare by
    equality.
    """
    for key, expected in room_filter.items():
        if not hasattr(room, key):
            raise KeyError(f"unknown room field: {key}")
        if not _field_matches(room, key, expected):
            return False
    return True
