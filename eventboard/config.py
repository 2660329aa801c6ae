"""
Configuration and settings for the event board service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SESSION_SECRET = "iftar-shondhane-secret"


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Public base URL, used to build the OAuth redirect URI.
    app_url: str = Field(default="http://localhost:3000")

    # Google OAuth client (Drive export)
    google_client_id: Optional[str] = Field(default=None)
    google_client_secret: Optional[str] = Field(default=None)
    drive_folder_name: str = Field(default="Iftar Shondhane")

    # Primary store (Supabase / PostgREST)
    supabase_url: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    supabase_table: str = Field(default="events")
    request_timeout: float = Field(default=10.0)

    # Backup store (Cloud Firestore)
    firebase_credentials_path: Optional[str] = Field(default=None)
    firebase_project_id: Optional[str] = Field(default=None)
    firestore_collection: str = Field(default="events")

    # Local cache (any SQLAlchemy URL)
    database_url: Optional[str] = Field(default="sqlite:///events.db")

    # Server-side token store for OAuth sessions
    redis_url: Optional[str] = Field(default=None)
    redis_token_prefix: str = Field(default="eventboard:tokens:")
    token_ttl_seconds: Optional[int] = Field(default=None)

    # Session cookie
    session_secret: str = Field(default=DEFAULT_SESSION_SECRET)
    session_https_only: bool = Field(default=False)
    session_same_site: str = Field(default="lax")

    # Deletion gate
    delete_secret: str = Field(default="0179215718")
    symmetric_delete: bool = Field(default=True)

    # Development toggles
    eventboard_use_in_memory_backends: bool = Field(default=False)

    @property
    def use_in_memory_backends(self) -> bool:
        return self.eventboard_use_in_memory_backends

    @property
    def oauth_redirect_uri(self) -> str:
        return f"{self.app_url.rstrip('/')}/auth/google/callback"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
