import logging
from datetime import datetime, timezone
from typing import Iterable

from chatrooms.application.errors import (
    ErrorResult,
    StaleRoomError,
    internal_error,
    not_found,
    not_participant,
)
from chatrooms.application.guards import service_boundary
from chatrooms.application.ports import RoomStore, SessionRegistry
from chatrooms.application.results import RoomResult, RoomsResult
from chatrooms.config import Config
from chatrooms.domain.models import Room, UserId, room_group

logger = logging.getLogger(__name__)


class RoomService:
    """Room listing, creation and membership changes.

    Public methods never raise: every outcome is a ``RoomResult``,
    ``RoomsResult`` or ``ErrorResult``.
    """

    def __init__(
        self,
        store: RoomStore,
        sessions: SessionRegistry,
        config: Config | None = None,
    ):
        self._store = store
        self._sessions = sessions
        self._config = config or Config()
        if self._config.rooms.page_size <= 0:
            raise ValueError("page_size must be positive")
        if self._config.rooms.update_attempts <= 0:
            raise ValueError("update_attempts must be positive")

    def _failed(self, operation: str, stage: str) -> ErrorResult:
        logger.exception("room %s failed: %s", operation, stage)
        return internal_error()

    async def _add_sessions_to_group(
        self, room: Room, user_ids: Iterable[UserId]
    ) -> None:
        wanted = set(user_ids)
        group = room_group(room.id)
        for active in await self._sessions.list_active_sessions():
            if active.user_id in wanted:
                await self._sessions.add_to_group(active.session, group)

    @service_boundary("list")
    async def list_rooms(
        self, user_id: UserId, offset: int | None = None
    ) -> RoomsResult | ErrorResult:
        skip = max(offset or 0, 0)
        try:
            rooms = await self._store.find_all(
                {"participants": user_id},
                skip=skip,
                limit=self._config.rooms.page_size,
                sort=("updated_at", "desc"),
            )
        except Exception:
            return self._failed("list", "fetch rooms")
        return RoomsResult([room for room in rooms if room is not None])

    @service_boundary("create")
    async def create(
        self,
        room_name: str,
        participants: Iterable[UserId],
        created_by_user: UserId,
    ) -> RoomResult | ErrorResult:
        participants = list(dict.fromkeys(participants))
        try:
            existing = await self._store.find_one(
                {
                    "participants": participants,
                    "created_by_user": created_by_user,
                    "room_name": room_name,
                }
            )
        except Exception:
            return self._failed("create", "fetch room")

        if existing is not None:
            return RoomResult(existing)

        try:
            room = await self._store.create(
                {
                    "room_name": room_name,
                    "participants": participants,
                    "created_by_user": created_by_user,
                    "created_at": datetime.now(timezone.utc),
                }
            )
        except Exception:
            return self._failed("create", "save room")

        # Not guarded on its own: a failure here reports 500 for a saved room.
        await self._add_sessions_to_group(room, participants)
        return RoomResult(room)

    @service_boundary("get")
    async def get(self, room_id: int, user_id: UserId) -> RoomResult | ErrorResult:
        room = await self._store.find_one({"id": room_id, "participants": user_id})
        if room is None:
            return not_found()
        if user_id not in room.participants:
            logger.warning(
                "store returned room %s for non-participant %s", room_id, user_id
            )
            return not_participant()
        return RoomResult(room)

    @service_boundary("remove")
    async def remove(
        self, room_id: int, user_id: UserId
    ) -> RoomResult | ErrorResult:
        for attempt in range(self._config.rooms.update_attempts):
            try:
                room = await self._store.find_one(
                    {"id": room_id, "participants": user_id}
                )
            except Exception:
                return self._failed("remove", "fetch room")

            if room is None:
                return not_found()
            if user_id not in room.participants:
                logger.warning(
                    "store returned room %s for non-participant %s", room_id, user_id
                )
                return not_participant()

            participants = list(room.participants)
            participants.remove(user_id)

            try:
                updated = await self._store.update(room, {"participants": participants})
            except StaleRoomError:
                logger.info("room %s changed during remove, attempt %d", room_id, attempt + 1)
                continue
            except Exception:
                return self._failed("remove", "update room")
            return RoomResult(updated)

        logger.error("room %s remove gave up after concurrent updates", room_id)
        return internal_error()

    @service_boundary("join")
    async def join(
        self, room_id: int, participant_id: UserId | None, user_id: UserId
    ) -> RoomResult | ErrorResult:
        """Add ``user_id`` to a room created by ``user_id``.

        ``participant_id`` is part of the request shape but is not read: the
        caller is both the authorized creator and the member added. A room
        that exists but was created by someone else reports 404.
        """
        for attempt in range(self._config.rooms.update_attempts):
            try:
                room = await self._store.find_one(
                    {"id": room_id, "created_by_user": user_id}
                )
            except Exception:
                return self._failed("join", "fetch room")

            if room is None:
                return not_found()
            if user_id in room.participants:
                return RoomResult(room)

            participants = [*room.participants, user_id]

            try:
                updated = await self._store.update(room, {"participants": participants})
            except StaleRoomError:
                logger.info("room %s changed during join, attempt %d", room_id, attempt + 1)
                continue
            except Exception:
                return self._failed("join", "update room")

            await self._add_sessions_to_group(updated, [user_id])
            return RoomResult(updated)

        logger.error("room %s join gave up after concurrent updates", room_id)
        return internal_error()
