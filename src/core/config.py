"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # External classification call (OpenAI-compatible chat completions)
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    classification_model: str = Field(
        default="gpt-4o-mini", validation_alias="CLASSIFICATION_MODEL",
    )

    # Classification pacing. Small batches and a pause between them keep a
    # free-tier quota (~15 requests per minute) from being exceeded.
    classification_batch_size: int = Field(
        default=3, validation_alias="CLASSIFICATION_BATCH_SIZE",
    )
    classification_batch_delay: float = Field(
        default=4.0, validation_alias="CLASSIFICATION_BATCH_DELAY",
    )
    classification_max_attempts: int = Field(
        default=3, validation_alias="CLASSIFICATION_MAX_ATTEMPTS",
    )
    classification_quota_backoff: float = Field(
        default=10.0, validation_alias="CLASSIFICATION_QUOTA_BACKOFF",
    )
    classification_error_delay: float = Field(
        default=2.0, validation_alias="CLASSIFICATION_ERROR_DELAY",
    )

    # Link liveness checks
    link_check_batch_size: int = Field(default=5, validation_alias="LINK_CHECK_BATCH_SIZE")
    link_check_timeout: float = Field(default=5.0, validation_alias="LINK_CHECK_TIMEOUT")

    # Backup encryption (demo-grade: key derived from the user id only)
    backup_kdf_salt: str = Field(
        default="salt_simulated_cloud", validation_alias="BACKUP_KDF_SALT",
    )
    backup_kdf_iterations: int = Field(default=1000, validation_alias="BACKUP_KDF_ITERATIONS")

    # Accounts
    require_email_verification: bool = Field(
        default=True, validation_alias="REQUIRE_EMAIL_VERIFICATION",
    )
    verification_code_ttl_minutes: int = Field(
        default=15, validation_alias="VERIFICATION_CODE_TTL_MINUTES",
    )
    session_ttl_days: int = Field(default=30, validation_alias="SESSION_TTL_DAYS")

    # Redis - backs the users/sessions/backups stores when enabled
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_enabled: bool = Field(default=False, validation_alias="REDIS_ENABLED")
    redis_pool_size: int = Field(default=20, validation_alias="REDIS_POOL_SIZE")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    @field_validator(
        "classification_batch_size",
        "classification_max_attempts",
        "link_check_batch_size",
        "backup_kdf_iterations",
    )
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Batch sizes, attempt counts and KDF iterations must be at least 1."""
        if value < 1:
            raise ValueError(f"must be a positive integer (got {value})")
        return value

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
