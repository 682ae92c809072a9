import json
from datetime import datetime

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from chatrooms.api.deps import RoomServiceDep, WSManagerDep
from chatrooms.application.errors import ErrorResult
from chatrooms.application.results import MembershipResult
from chatrooms.domain.models import room_group

rooms_router = APIRouter(prefix="/rooms")


class RoomIn(BaseModel):
    room_name: str
    participants: list[int]
    created_by_user: int


class LeaveIn(BaseModel):
    user_id: int


class JoinIn(BaseModel):
    participant_id: int | None = None
    user_id: int


class RoomOut(BaseModel):
    id: int
    room_name: str
    participants: list[int]
    created_by_user: int
    created_at: datetime
    updated_at: datetime
    version: int


class RoomEnvelope(BaseModel):
    room: RoomOut


class RoomsEnvelope(BaseModel):
    rooms: list[RoomOut]


class ErrorOut(BaseModel):
    error: str
    status: int


ERROR_RESPONSES = {
    404: {"model": ErrorOut},
    409: {"model": ErrorOut},
    500: {"model": ErrorOut},
}


def _render(result: MembershipResult):
    if isinstance(result, ErrorResult):
        return JSONResponse(result.as_dict(), status_code=result.status)
    return result.as_dict()


@rooms_router.get("/", response_model=RoomsEnvelope, responses={500: {"model": ErrorOut}})
async def list_rooms(
    room_service: RoomServiceDep,
    user_id: int = Query(...),
    offset: int = Query(0, ge=0),
):
    return _render(await room_service.list_rooms(user_id, offset=offset))


@rooms_router.post("/", response_model=RoomEnvelope, responses={500: {"model": ErrorOut}})
async def create_room(room_in: RoomIn, room_service: RoomServiceDep):
    result = await room_service.create(
        room_name=room_in.room_name,
        participants=room_in.participants,
        created_by_user=room_in.created_by_user,
    )
    return _render(result)


@rooms_router.get("/{room_id}", response_model=RoomEnvelope, responses=ERROR_RESPONSES)
async def get_room(room_id: int, room_service: RoomServiceDep, user_id: int = Query(...)):
    return _render(await room_service.get(room_id=room_id, user_id=user_id))


@rooms_router.post(
    "/{room_id}/leave", response_model=RoomEnvelope, responses=ERROR_RESPONSES
)
async def leave_room(room_id: int, leave_in: LeaveIn, room_service: RoomServiceDep):
    return _render(await room_service.remove(room_id=room_id, user_id=leave_in.user_id))


@rooms_router.post(
    "/{room_id}/join", response_model=RoomEnvelope, responses=ERROR_RESPONSES
)
async def join_room(room_id: int, join_in: JoinIn, room_service: RoomServiceDep):
    result = await room_service.join(
        room_id=room_id,
        participant_id=join_in.participant_id,
        user_id=join_in.user_id,
    )
    return _render(result)


@rooms_router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    ws_manager: WSManagerDep,
    user_id: int = Query(...),
):
    conn_id = ws_manager.make_conn_id()

    try:
        await ws_manager.connect(websocket, conn_id, user_id)
        while True:
            text = await websocket.receive_text()
            try:
                message = json.loads(text)
            except ValueError:
                message = None
            if not isinstance(message, dict) or "room_id" not in message:
                await ws_manager.send_to_conn(
                    conn_id, {"type": "error", "detail": "expected room_id and text"}
                )
                continue

            room_id = message["room_id"]
            group = room_group(room_id)
            if not ws_manager.in_group(conn_id, group):
                await ws_manager.send_to_conn(
                    conn_id,
                    {"type": "error", "room_id": room_id, "detail": "not in room"},
                )
                continue

            await ws_manager.broadcast_group(
                group,
                {
                    "type": "msg",
                    "room_id": room_id,
                    "user_id": user_id,
                    "text": message.get("text"),
                },
            )
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket)
