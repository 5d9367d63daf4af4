# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Core configuration, all env-driven.
Single source of truth for every tunable parameter of the workspace service.
"""

import os


class Settings:
    """Application settings loaded from environment variables."""

    SERVICE_NAME: str = os.getenv("SERVICE_NAME", "collab-time")
    SERVICE_VERSION: str = os.getenv("SERVICE_VERSION", "1.0.0")
    SERVICE_PORT: int = int(os.getenv("SERVICE_PORT", "8010"))

    # Upstream team API (actions, storage, password auth)
    TEAM_API_URL: str = os.getenv("TEAM_API_URL", "http://team-api:8000")
    TEAM_API_TIMEOUT: float = float(os.getenv("TEAM_API_TIMEOUT", "5.0"))

    # Realtime SSE endpoint; empty disables the background subscriber
    REALTIME_URL: str = os.getenv("REALTIME_URL", "")
    REALTIME_RECONNECT_SECONDS: float = float(os.getenv("REALTIME_RECONNECT_SECONDS", "1.0"))
    REALTIME_RECONNECT_MAX_SECONDS: float = float(
        os.getenv("REALTIME_RECONNECT_MAX_SECONDS", "30.0")
    )

    # Keys accepted by the realtime event ingress (X-API-Key); empty rejects all
    EVENTS_API_KEYS: list[str] = [
        key for key in os.getenv("EVENTS_API_KEYS", "").split(",") if key
    ]

    # Client-state storage; empty keeps everything in process memory
    STATE_DATABASE_URL: str = os.getenv("STATE_DATABASE_URL", "")

    SESSION_MAX_AGE_SECONDS: int = int(
        os.getenv("SESSION_MAX_AGE_SECONDS", str(60 * 60 * 24 * 7))
    )
    REMOVAL_DEDUP_SECONDS: float = float(os.getenv("REMOVAL_DEDUP_SECONDS", "1.5"))
    OVERLAP_REFRESH_SECONDS: int = int(os.getenv("OVERLAP_REFRESH_SECONDS", "30"))
    AVAILABILITY_REFRESH_SECONDS: int = int(
        os.getenv("AVAILABILITY_REFRESH_SECONDS", "60")
    )
    MAX_VISITED_TEAMS: int = int(os.getenv("MAX_VISITED_TEAMS", "10"))
    MAX_NOTICES: int = int(os.getenv("MAX_NOTICES", "200"))
    MAX_OPEN_WORKSPACES: int = int(os.getenv("MAX_OPEN_WORKSPACES", "1000"))
    PASSWORD_MIN_LENGTH: int = int(os.getenv("PASSWORD_MIN_LENGTH", "4"))
    PASSWORD_MAX_LENGTH: int = int(os.getenv("PASSWORD_MAX_LENGTH", "128"))

    DEFAULT_VIEWER_TIMEZONE: str = os.getenv("DEFAULT_VIEWER_TIMEZONE", "UTC")

    CORS_ORIGINS: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
