from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CONFIG_ENV_VAR = "CHATROOMS_CONFIG"


def _default_config_path() -> Path:
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return Path(__file__).resolve().parent.parent / "config.yaml"


def _require_int(value: Any, default: int, name: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer") from exc


@dataclass(frozen=True)
class RoomSettings:
    page_size: int = 20
    update_attempts: int = 3


@dataclass(frozen=True)
class Config:
    rooms: RoomSettings = field(default_factory=RoomSettings)

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Config":
        config_path = Path(path) if path else _default_config_path()
        if not config_path.exists():
            return cls()
        raw = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(raw, dict):
            raise ValueError("config.yaml must contain a mapping")
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        defaults = cls().rooms
        rooms_data = data.get("rooms")
        if rooms_data is None:
            rooms_data = {}
        if not isinstance(rooms_data, dict):
            raise ValueError("rooms must be a mapping")
        rooms = RoomSettings(
            page_size=_require_int(
                rooms_data.get("page_size"), defaults.page_size, "rooms.page_size"
            ),
            update_attempts=_require_int(
                rooms_data.get("update_attempts"),
                defaults.update_attempts,
                "rooms.update_attempts",
            ),
        )
        if rooms.page_size <= 0:
            raise ValueError("rooms.page_size must be positive")
        if rooms.update_attempts <= 0:
            raise ValueError("rooms.update_attempts must be positive")
        return cls(rooms=rooms)
