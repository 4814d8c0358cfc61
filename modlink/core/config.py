"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Discord OAuth + role connections
    discord_client_id: str = Field(..., description="Discord OAuth Client ID")
    discord_client_secret: str = Field(..., description="Discord OAuth Client Secret")
    discord_bot_token: str = Field(default="", description="Discord bot token (optional)")

    # Nexus Mods OAuth
    nexus_client_id: str = Field(..., description="Nexus Mods OAuth Client ID")
    nexus_client_secret: str = Field(default="", description="Nexus Mods OAuth Client Secret")

    # Signed cookies
    cookie_secret: str = Field(..., description="Secret key for signing cookies")
    state_cookie_max_age: int = Field(default=300, description="Correlation cookie lifetime")
    error_cookie_max_age: int = Field(default=120, description="Error detail cookie lifetime")

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")

    # Server URLs
    public_url: str = Field(default="http://localhost:3000", description="Auth site public URL")

    # Lifetimes (seconds)
    pending_link_ttl_seconds: int = Field(default=300)
    download_stats_ttl_seconds: int = Field(default=300)
    refresh_cooldown_seconds: int = Field(default=60)
    token_expiry_skew_seconds: int = Field(default=60)
    sweep_interval_seconds: int = Field(default=60)

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def discord_redirect_uri(self) -> str:
        return f"{self.public_url}/discord-oauth-callback"

    @property
    def nexus_redirect_uri(self) -> str:
        return f"{self.public_url}/nexus-mods-callback"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
