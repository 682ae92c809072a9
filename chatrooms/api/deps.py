from typing import Annotated

from fastapi import Depends
from fastapi.requests import HTTPConnection

from chatrooms.application.room_service import RoomService
from chatrooms.infrastructure.ws_manager import WSManager


def get_room_service(conn: HTTPConnection) -> RoomService:
    return conn.app.state.room_service


def get_ws_manager(conn: HTTPConnection) -> WSManager:
    return conn.app.state.ws_manager


RoomServiceDep = Annotated[RoomService, Depends(get_room_service)]
WSManagerDep = Annotated[WSManager, Depends(get_ws_manager)]
