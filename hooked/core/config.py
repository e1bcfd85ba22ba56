"""
Configuration settings for the application
"""

import os
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""

    # Record store
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./hooked.db")
    USE_FIREBASE: bool = os.getenv("USE_FIREBASE", "false").lower() in ("1", "true", "yes")
    FIREBASE_CREDENTIALS_JSON: str | None = os.getenv("FIREBASE_CREDENTIALS_JSON")
    FIREBASE_CREDENTIALS_FILE: str | None = os.getenv("FIREBASE_CREDENTIALS_FILE")
    FIREBASE_CREDENTIALS_B64: str | None = os.getenv("FIREBASE_CREDENTIALS_B64")

    # Security
    ADMIN_TOKEN: str = os.getenv("ADMIN_TOKEN", "admin_token_123")

    # Application
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")
    SESSION_STORE_PATH: str = os.getenv("SESSION_STORE_PATH", ".hooked_session.json")

    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
        "http://localhost:8081",
    ]

    # Polling cadence (seconds)
    NOTIFICATION_POLL_SECONDS: float = 45
    NOTIFICATION_POLLER_IDLE_SECONDS: float = 1800
    CHAT_POLL_SECONDS: float = 30
    DISCOVERY_POLL_SECONDS: float = 60

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 60

    class Config:
        env_file = ".env"

settings = Settings()
