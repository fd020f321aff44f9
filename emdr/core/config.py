"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App Info
    app_name: str = "EMDR Protokoll API"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=3001, alias="PORT")
    workers: int = 1

    # Database
    data_save_folder: str = "./data"
    db_file: str = "emdr.db"

    @property
    def database_url(self) -> str:
        """SQLite database URL."""
        db_path = Path(self.data_save_folder) / self.db_file
        return f"sqlite+aiosqlite:///{db_path}"

    # Protocol storage: server-side record store or client-local key-value files
    storage_backend: Literal["database", "local"] = Field(
        default="database",
        alias="STORAGE_BACKEND",
    )
    local_store_folder: str = "./data/local"

    # JWT-signed session tokens
    jwt_secret_key: str = Field(
        default="change-me-emdr-session-secret",
        alias="JWT_SECRET_KEY",
    )
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "emdr-protokoll"
    jwt_audience: str = "emdr-protokoll"

    # Sessions expire a fixed number of days after issuance
    session_expire_days: int = 7
    session_cookie_name: str = "session"
    session_cookie_secure: bool = False
    session_cleanup_interval_minutes: int = 60

    # Optional account created on startup
    default_username: str | None = Field(default=None, alias="DEFAULT_USERNAME")
    default_password: str | None = Field(default=None, alias="DEFAULT_PASSWORD")
    default_display_name: str | None = None

    # CORS
    cors_origins: list[str] = ["http://localhost:5173"]
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Scheduler for session housekeeping
    enable_background_services: bool = Field(
        default=True,
        alias="ENABLE_BACKGROUND_SERVICES",
    )

    @field_validator("session_expire_days")
    @classmethod
    def check_expire_days(cls, v: int) -> int:
        """Session lifetime must be at least one day."""
        if v < 1:
            raise ValueError("session_expire_days must be >= 1")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
