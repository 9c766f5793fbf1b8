"""Application configuration using pydantic-settings."""
import logging
import secrets
from enum import StrEnum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# HS256 keys shorter than this have too little entropy to sign tokens safely.
MIN_JWT_SECRET_LENGTH = 32


class Environment(StrEnum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT, validation_alias="ENVIRONMENT",
    )
    port: int = Field(default=4000, validation_alias="PORT")
    log_level: str | None = Field(default=None, validation_alias="LOG_LEVEL")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./accounts.db", validation_alias="DATABASE_URL",
    )
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")

    # Redis - for user caching and shared rate limiting
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_enabled: bool = Field(default=True, validation_alias="REDIS_ENABLED")
    redis_pool_size: int = Field(default=20, validation_alias="REDIS_POOL_SIZE")
    cache_ttl_seconds: int = Field(default=60 * 60 * 24, validation_alias="CACHE_TTL_SECONDS")

    # Tokens. Empty secret is the "not configured" sentinel resolved by the validator below.
    jwt_secret: str = Field(default="", validation_alias="JWT_SECRET")
    jwt_expires_in: int = Field(default=3600, validation_alias="JWT_EXPIRES_IN")
    jwt_refresh_expires_in: int = Field(
        default=60 * 60 * 24 * 7, validation_alias="JWT_REFRESH_EXPIRES_IN",
    )

    # Argon2id cost parameters (memory in KiB)
    argon2_memory_cost: int = Field(default=19456, validation_alias="ARGON2_MEMORY_COST")
    argon2_time_cost: int = Field(default=2, validation_alias="ARGON2_TIME_COST")
    argon2_parallelism: int = Field(default=1, validation_alias="ARGON2_PARALLELISM")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(default="*", validation_alias="CORS_ORIGINS")

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """
        Resolve the token signing secret.

        Production refuses to start without a secret of sufficient length, since a
        generated secret would invalidate every issued token on restart. Other
        environments generate a random secret and warn.
        """
        if not self.jwt_secret:
            if self.environment == Environment.PRODUCTION:
                raise ValueError(
                    "JWT_SECRET is required in production. "
                    "Set JWT_SECRET in your environment or .env file.",
                )
            self.jwt_secret = secrets.token_hex(32)
            logger.warning("Using auto-generated JWT_SECRET. Tokens will not survive restarts.")
        if (
            self.environment == Environment.PRODUCTION
            and len(self.jwt_secret) < MIN_JWT_SECRET_LENGTH
        ):
            raise ValueError(
                f"JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} characters in production.",
            )
        return self

    @property
    def is_development(self) -> bool:
        """True when running in development mode (errors are exposed to clients)."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def effective_log_level(self) -> str:
        """LOG_LEVEL if set, otherwise DEBUG in development and INFO elsewhere."""
        if self.log_level:
            return self.log_level.upper()
        return "DEBUG" if self.is_development else "INFO"

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
