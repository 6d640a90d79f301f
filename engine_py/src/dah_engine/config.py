"""Server settings loaded from the environment"""

import os
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .rules import RuleConfig, create_rules


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class ServerSettings(BaseModel):
    """Deployment configuration for the websocket server and idle reaper."""

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"
    reload: bool = False
    admin_key: Optional[str] = None
    card_data_dir: Optional[str] = None
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    room_idle_timeout_minutes: int = 60
    room_idle_warning_minutes: Optional[int] = None
    room_cleanup_interval_seconds: int = 60

    room_id_format: str = "code"
    allow_mid_game_rejoin: bool = False

    @model_validator(mode="after")
    def clamp_reaper_settings(self):
        """Keep the idle reaper's timings usable whatever the environment says."""
        self.room_idle_timeout_minutes = max(1, self.room_idle_timeout_minutes)
        warning = self.room_idle_warning_minutes
        if warning is None:
            warning = self.room_idle_timeout_minutes - 1
        self.room_idle_warning_minutes = min(max(1, warning), max(1, self.room_idle_timeout_minutes - 1))
        self.room_cleanup_interval_seconds = max(10, self.room_cleanup_interval_seconds)
        return self

    @property
    def idle_timeout_seconds(self) -> float:
        return self.room_idle_timeout_minutes * 60.0

    @property
    def idle_warning_seconds(self) -> float:
        return self.room_idle_warning_minutes * 60.0

    def rules(self) -> RuleConfig:
        return create_rules(
            room_id_format=self.room_id_format,
            allow_mid_game_rejoin=self.allow_mid_game_rejoin,
        )


def load_settings() -> ServerSettings:
    warning = os.getenv("ROOM_IDLE_WARNING_MINUTES")
    cors = os.getenv("CORS_ORIGINS", "*")
    return ServerSettings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", 8000)),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        reload=_env_bool("RELOAD"),
        admin_key=os.getenv("ADMIN_KEY") or None,
        card_data_dir=os.getenv("CARD_DATA_DIR") or None,
        cors_origins=[origin.strip() for origin in cors.split(",") if origin.strip()],
        room_idle_timeout_minutes=int(os.getenv("ROOM_IDLE_TIMEOUT_MINUTES", 60)),
        room_idle_warning_minutes=int(warning) if warning else None,
        room_cleanup_interval_seconds=int(os.getenv("ROOM_CLEANUP_INTERVAL_SECONDS", 60)),
        room_id_format=os.getenv("ROOM_ID_FORMAT", "code").lower(),
        allow_mid_game_rejoin=_env_bool("ALLOW_MID_GAME_REJOIN"),
    )
