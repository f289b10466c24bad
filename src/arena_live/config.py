import os
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator

from arena_live.exceptions import ConfigurationException

VALID_TRANSPORTS = ("websocket", "polling")


class ArenaLiveConfig(BaseModel):
    """Configuration for the session runtime and its Socket.IO connection."""

    # Server settings
    server_url: str = "http://localhost:5100"
    socketio_path: str = "socket.io"

    # Transport modes, tried in order on every connection attempt
    transports: List[str] = Field(default_factory=lambda: ["websocket", "polling"])
    connect_timeout: float = 20.0

    # Reconnection settings (0 attempts = retry forever)
    reconnection_attempts: int = 0
    reconnection_delay: float = 1.0
    reconnection_delay_max: float = 5.0

    log_level: str = "INFO"

    @field_validator("transports")
    @classmethod
    def transports_must_be_known(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("At least one transport mode is required.")
        unknown = [mode for mode in v if mode not in VALID_TRANSPORTS]
        if unknown:
            raise ValueError(f"Unknown transport modes: {unknown}")
        return v

    @classmethod
    def from_env(cls) -> "ArenaLiveConfig":
        """Create config from environment variables (and a .env file if present)."""
        load_dotenv(find_dotenv(usecwd=True))
        try:
            return cls(
                server_url=os.getenv("ARENA_LIVE_SERVER_URL", "http://localhost:5100"),
                socketio_path=os.getenv("ARENA_LIVE_SOCKETIO_PATH", "socket.io"),
                transports=[
                    mode.strip()
                    for mode in os.getenv("ARENA_LIVE_TRANSPORTS", "websocket,polling").split(",")
                    if mode.strip()
                ],
                connect_timeout=float(os.getenv("ARENA_LIVE_CONNECT_TIMEOUT", "20")),
                reconnection_attempts=int(os.getenv("ARENA_LIVE_RECONNECTION_ATTEMPTS", "0")),
                reconnection_delay=float(os.getenv("ARENA_LIVE_RECONNECTION_DELAY", "1")),
                reconnection_delay_max=float(os.getenv("ARENA_LIVE_RECONNECTION_DELAY_MAX", "5")),
                log_level=os.getenv("ARENA_LIVE_LOG_LEVEL", "INFO"),
            )
        except ValueError as e:
            # pydantic's ValidationError is a ValueError too
            raise ConfigurationException(f"Invalid arena_live configuration: {e}")


class Identity(BaseModel):
    """Connection-time credentials of the authenticated user."""
    user_id: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1)


def load_identity() -> Optional[Identity]:
    """Read the user identity from the environment. Returns None when incomplete."""
    load_dotenv(find_dotenv(usecwd=True))
    user_id = os.getenv("ARENA_LIVE_USER_ID")
    token = os.getenv("ARENA_LIVE_TOKEN")
    if not user_id or not token:
        return None
    return Identity(user_id=user_id, token=token)
