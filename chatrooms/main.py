from fastapi import FastAPI
from chatrooms.api.routes.rooms import rooms_router
from contextlib import asynccontextmanager
import redis.asyncio as redis
import os

from chatrooms.application.room_service import RoomService
from chatrooms.config import Config
from chatrooms.infrastructure.redis_room_store import RedisRoomStore
from chatrooms.infrastructure.ws_manager import WSManager


def app_factory(redis_url, config: Config | None = None):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.redis = redis.from_url(
            redis_url,
            decode_responses=True,
            health_check_interval=30,
        )
        app.state.ws_manager = WSManager()
        app.state.room_store = RedisRoomStore(app.state.redis)
        app.state.room_service = RoomService(
            app.state.room_store,
            app.state.ws_manager,
            config=config or Config.load(),
        )
        try:
            yield
        finally:
            await app.state.redis.aclose()

    app = FastAPI(lifespan=lifespan)
    app.include_router(rooms_router)

    return app


REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")

app = app_factory(REDIS_URL)
