"""Configuration module for the meeting signaling service.

The config file is discovered in the following order:

1. The path in the `MEETING_SIGNALING_CONFIG_PATH` environment variable.
2. `.env` in the project root.
3. No file; environment variables only.

All fields are loaded by Pydantic's `BaseSettings`, so every field can be
overridden from the environment. Extra environment variables are allowed and
ignored by the application.

How to extend/maintain:
-----------------------
- Add new config fields to the `Settings` class, and document them.
- If you change the config discovery logic, update this docstring.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "MEETING_SIGNALING_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent

DEFAULT_STUN_URLS: str = "stun:stun.l.google.com:19302,stun:stun1.l.google.com:19302,stun:stun2.l.google.com:19302"


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """Determine the config file path to use.

    Returns:
        Optional[str]: Path to config file, or None when only the environment
        should be used.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    load_dotenv(dotenv_path=CONFIG_PATH, override=False)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    # Application
    APP_NAME: str = "meeting-signaling"
    ENV: str = "dev"
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None  # Attach a FileHandler when set
    LOKI_URL: Optional[str] = None  # e.g. "http://localhost:3100/loki/api/v1/push"

    # JWT configuration; bearer tokens are only accepted when SECRET_KEY is set
    SECRET_KEY: SecretStr = SecretStr("")
    ALGORITHM: str = "HS256"

    # MongoDB configuration (Meeting Store)
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "interaction"
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000
    MEETINGS_COLLECTION: str = "meetings"

    # HTTP surface
    API_PREFIX: str = "/api/interaction/video-meetings"
    MEETING_LINK_PREFIX: str = "/video-meeting"
    ADMIN_ROLE: str = "admin"
    CORS_ORIGINS: str = "*"  # Comma-separated list

    # WebRTC ICE configuration
    # STUN servers (comma-separated list of URLs)
    WEBRTC_STUN_URLS: str = DEFAULT_STUN_URLS
    # TURN servers (optional, comma-separated list of URLs)
    WEBRTC_TURN_URLS: Optional[str] = None  # e.g., "turn:turn.example.com:3478"
    WEBRTC_TURN_USERNAME: Optional[str] = None
    WEBRTC_TURN_CREDENTIAL: Optional[SecretStr] = None
    WEBRTC_ICE_TRANSPORT_POLICY: str = "all"  # all, relay (force TURN)

    # Idle room reaping; 0 disables the reaper
    WEBRTC_ROOM_IDLE_TIMEOUT_SECONDS: int = 0
    WEBRTC_ROOM_REAPER_INTERVAL_SECONDS: int = 60

    @field_validator("WEBRTC_ICE_TRANSPORT_POLICY")
    @classmethod
    def validate_ice_transport_policy(cls, value: str) -> str:
        """Only the two policies browsers understand are accepted."""
        if value not in ("all", "relay"):
            raise ValueError("WEBRTC_ICE_TRANSPORT_POLICY must be 'all' or 'relay'")
        return value

    @field_validator("WEBRTC_ROOM_IDLE_TIMEOUT_SECONDS", "WEBRTC_ROOM_REAPER_INTERVAL_SECONDS")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() in ("prod", "production")

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def get_ice_servers(self) -> List[Dict[str, Any]]:
        """Build the STUN/TURN descriptor list handed to clients verbatim."""
        ice_servers: List[Dict[str, Any]] = []

        if self.WEBRTC_STUN_URLS:
            stun_urls = [url.strip() for url in self.WEBRTC_STUN_URLS.split(",") if url.strip()]
            if stun_urls:
                ice_servers.append({"urls": stun_urls})

        if self.WEBRTC_TURN_URLS:
            turn_urls = [url.strip() for url in self.WEBRTC_TURN_URLS.split(",") if url.strip()]
            if turn_urls:
                turn_server: Dict[str, Any] = {"urls": turn_urls}
                if self.WEBRTC_TURN_USERNAME:
                    turn_server["username"] = self.WEBRTC_TURN_USERNAME
                if self.WEBRTC_TURN_CREDENTIAL:
                    turn_server["credential"] = self.WEBRTC_TURN_CREDENTIAL.get_secret_value()
                ice_servers.append(turn_server)

        # Fallback to public STUN servers if nothing configured
        if not ice_servers:
            ice_servers.append({"urls": [url for url in DEFAULT_STUN_URLS.split(",")]})

        return ice_servers


settings = Settings()
