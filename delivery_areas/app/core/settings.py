"""
Application settings with validation using pydantic-settings.
Validates all required environment variables at startup.
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from delivery_areas.app.core.constants import DEFAULT_CIRCLE_RADIUS_M, DEFAULT_GEOCODE_TIMEOUT_S


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: str = Field(default="production", description="Environment: development or production")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # Database configuration
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./delivery_areas.db",
        description="SQLAlchemy async database URL",
    )
    DB_POOL_RECYCLE: int = Field(default=3600, description="Database connection recycle time (seconds)")

    # Google Maps configuration
    GOOGLE_MAPS_API_KEY: Optional[str] = Field(default=None, description="Google Maps Geocoding API key")
    GEOCODE_TIMEOUT_SECONDS: float = Field(default=DEFAULT_GEOCODE_TIMEOUT_S, gt=0, description="Reverse/forward geocoding timeout")
    GEOCODE_LANGUAGE: str = Field(default="en", description="Language for geocoding results")

    # Zone authoring
    DEFAULT_CIRCLE_RADIUS_METERS: float = Field(
        default=DEFAULT_CIRCLE_RADIUS_M, gt=0, description="Radius assigned to a circle zone on its first click"
    )

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        if v not in ("development", "production"):
            raise ValueError("ENVIRONMENT must be 'development' or 'production'")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    def validate_production_settings(self) -> list[str]:
        """
        Validate that all required settings are present in production.
        Returns list of missing settings.
        """
        errors = []

        if self.ENVIRONMENT == "production":
            if not self.GOOGLE_MAPS_API_KEY:
                errors.append("GOOGLE_MAPS_API_KEY is required in production")
            if self.DATABASE_URL.startswith("sqlite"):
                errors.append("DATABASE_URL must point to a server database in production")

        return errors

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT == "production"


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get application settings (singleton)."""
    global _settings
    if _settings is None:
        settings = Settings()
        # Validate production settings
        errors = settings.validate_production_settings()
        if errors:
            error_msg = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ValueError(error_msg)
        _settings = settings
    return _settings
