import logging
import secrets
from typing import Any, Iterable
from starlette.websockets import WebSocket

from chatrooms.domain.models import ActiveSession, UserId

logger = logging.getLogger(__name__)


class WSManager:
    """Connected WebSockets, the user behind each one, and broadcast groups."""

    def __init__(self) -> None:
        self._by_id: dict[str, WebSocket] = {}
        self._users: dict[str, UserId] = {}
        self._groups: dict[str, set[str]] = {}

    def make_conn_id(self, n: int = 16) -> str:
        return secrets.token_hex(n // 2)

    async def connect(self, ws: WebSocket, conn_id: str, user_id: UserId) -> None:
        await ws.accept()
        ws.state.conn_id = conn_id
        self._by_id[conn_id] = ws
        self._users[conn_id] = user_id

    def disconnect(self, ws: WebSocket) -> None:
        cid = getattr(ws.state, "conn_id", None)
        if cid:
            self._forget(cid)

    def _forget(self, cid: str) -> None:
        self._by_id.pop(cid, None)
        self._users.pop(cid, None)
        for group_name in list(self._groups):
            self.discard_from_group(cid, group_name)

    async def list_active_sessions(self) -> list[ActiveSession]:
        return [
            ActiveSession(user_id=user_id, session=cid)
            for cid, user_id in self._users.items()
        ]

    async def add_to_group(self, session: str, group_name: str) -> None:
        if session not in self._by_id:
            return
        self._groups.setdefault(group_name, set()).add(session)

    def discard_from_group(self, session: str, group_name: str) -> None:
        members = self._groups.get(group_name)
        if members is None:
            return
        members.discard(session)
        if not members:
            del self._groups[group_name]

    def in_group(self, session: str, group_name: str) -> bool:
        return session in self._groups.get(group_name, ())

    def group_members(self, group_name: str) -> set[str]:
        return set(self._groups.get(group_name, ()))

    async def send_to_conn(self, conn_id: str, payload: dict[str, Any]) -> None:
        ws = self._by_id.get(conn_id)
        if ws:
            await ws.send_json(payload)

    async def broadcast(self, conn_ids: Iterable[str], payload: dict[str, Any]) -> None:
        for cid in list(conn_ids):
            try:
                await self.send_to_conn(cid, payload)
            except Exception:
                logger.warning("dropping connection %s after failed send", cid, exc_info=True)
                self._forget(cid)

    async def broadcast_group(self, group_name: str, payload: dict[str, Any]) -> None:
        await self.broadcast(self.group_members(group_name), payload)
