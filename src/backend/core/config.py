"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables or a local .env file.
"""

from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "MoraleBoard"
    APP_ENV: str = "development"
    DEBUG: bool = False
    SECRET_KEY: str = ""  # Required - loaded from environment

    # Identity tokens (issued by the identity provider)
    JWT_ALGORITHM: str = "HS256"
    TOKEN_ISSUER: str = "moraleboard-identity"
    TOKEN_AUDIENCE: str = "moraleboard-api"
    ADMIN_ROLE: str = "admin"

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_required_secrets(cls, v: str, info: Any) -> str:
        """Validate that required secrets are set."""
        if not v:
            raise ValueError(f"{info.field_name} must be set in environment")
        return v

    # Azure Cosmos DB
    # Either endpoint (RBAC via DefaultAzureCredential) or connection string (emulator)
    AZURE_COSMOS_ENDPOINT: str | None = None
    AZURE_COSMOS_CONNECTION_STRING: str | None = None
    AZURE_COSMOS_DATABASE: str = "moraleboard"
    AZURE_COSMOS_DISABLE_SSL: bool = False  # Emulator only (self-signed cert)

    # External roster source (consulted when building voting rosters)
    ROSTER_SOURCE_URL: str | None = None
    ROSTER_SOURCE_TOKEN: str | None = None
    ROSTER_SOURCE_TIMEOUT_SECONDS: float = 10.0

    # Schedule sweep (publish / auto-delete / auto-archive)
    ENABLE_SWEEP_SCHEDULER: bool = True
    SWEEP_INTERVAL_SECONDS: int = 60

    # Activity rules
    MAX_ACTIVITY_IMAGES: int = 5
    POLL_QUESTION_MAX_LENGTH: int = 100
    OPTIMISTIC_WRITE_RETRIES: int = 5

    # CORS - stored as comma-separated string to avoid pydantic-settings JSON parsing issues
    CORS_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        import json

        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
