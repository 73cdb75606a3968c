# taskboard/core/config.py - Environment-driven settings for the Taskboard API
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List


class Settings(BaseSettings):
    """
    Settings for the Taskboard API, read from the environment and .env
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database Settings
    DATABASE_URL: str = Field(..., description="Async SQLAlchemy URL (postgresql+asyncpg or sqlite+aiosqlite)")

    # Application Settings
    ENVIRONMENT: str = Field("development", description="Environment name")
    LOG_LEVEL: str = Field("INFO", description="Log level")
    API_PREFIX: str = Field("/api", description="Prefix for all API routes")

    # Logging Configuration
    ENABLE_JSON_LOGGING: bool = Field(False, description="Enable JSON structured logging")

    # CORS Settings
    CORS_ORIGINS: str = Field(
        "http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    # Rate Limiting Settings
    RATE_LIMIT_ENABLED: bool = Field(True, description="Enable rate limiting")
    DEFAULT_RATE_LIMIT: str = Field("100/minute", description="Default rate limit")

    # Performance Settings
    DB_POOL_SIZE: int = Field(20, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(0, description="Database max overflow connections")

    # Task ordering behaviour
    MAX_BULK_CREATE: int = Field(1000, ge=1, description="Maximum number of tasks in one bulk create")
    COMPACT_ORDER_ON_DELETE: bool = Field(
        True,
        description="Close the order_index gap left by deleted tasks"
    )
    CLAMP_REORDER_INDEX: bool = Field(
        True,
        description="Clamp reorder targets to the last occupied position"
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert CORS_ORIGINS string to list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def should_use_json_logging(self) -> bool:
        """Use JSON logging in production or when explicitly enabled"""
        return self.is_production or self.ENABLE_JSON_LOGGING


# Create settings instance
settings = Settings()
