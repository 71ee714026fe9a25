"""Application configuration."""

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Dental Admin", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Remote clinic API
    clinic_api_url: str = Field(default="http://localhost:8080", alias="CLINIC_API_URL")
    clinic_api_prefix: str = Field(default="/api/v1", alias="CLINIC_API_PREFIX")
    request_timeout_seconds: float = Field(default=15.0, alias="REQUEST_TIMEOUT_SECONDS")

    # Admin views
    clinic_timezone: str = Field(default="America/Bogota", alias="CLINIC_TIMEZONE")
    default_page_limit: int = Field(default=10, ge=1, le=100, alias="DEFAULT_PAGE_LIMIT")
    notice_ttl_seconds: float = Field(default=4.0, alias="NOTICE_TTL_SECONDS")
    session_idle_seconds: float = Field(default=1800.0, gt=0, alias="SESSION_IDLE_SECONDS")
    dashboard_months: int = Field(default=6, ge=1, le=24, alias="DASHBOARD_MONTHS")

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Comma-separated ``CORS_ORIGINS`` as a list."""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(default="json", alias="LOG_FORMAT")

    @property
    def clinic_api_base_url(self) -> str:
        """Base URL of the remote clinic API, version prefix included."""
        return f"{self.clinic_api_url.rstrip('/')}{self.clinic_api_prefix}"

    @property
    def tzinfo(self) -> ZoneInfo:
        """Time zone used for the naive local date/time inputs."""
        return ZoneInfo(self.clinic_timezone)

    @field_validator("clinic_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject zone names unknown to the tz database."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {v}") from e
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
