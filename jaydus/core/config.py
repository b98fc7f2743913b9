"""
Core configuration management using Pydantic Settings.
Follows 12-factor app principles for environment-based configuration.
"""

from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application
    app_name: str = "Jaydus Platform API"
    version: str = "1.0.0"
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    app_url: str = Field(default="http://localhost:3000")

    # Security
    secret_key: str = Field(default="jaydus-development-secret-key")
    algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60)

    # Persistence
    database_backend: str = Field(default="memory")
    database_url: str = Field(default="sqlite+aiosqlite:///./jaydus.db")
    mongodb_uri: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = Field(default="jaydus")
    firebase_service_account_json: Optional[str] = Field(default=None)
    firebase_project_id: Optional[str] = Field(default=None)

    # Redis (rate limiting is disabled when unset)
    redis_url: Optional[str] = Field(default=None)

    # CORS, comma separated
    cors_origins: str = Field(default="http://localhost:3000,http://localhost:5173")

    # AI Services
    openai_api_key: Optional[str] = Field(default=None)
    anthropic_api_key: Optional[str] = Field(default=None)
    openrouter_api_key: Optional[str] = Field(default=None)
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    anthropic_base_url: str = Field(default="https://api.anthropic.com/v1")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1")
    anthropic_version: str = Field(default="2023-06-01")
    upstream_timeout: float = Field(default=60.0)

    # Stripe
    stripe_secret_key: Optional[str] = Field(default=None)
    stripe_webhook_secret: Optional[str] = Field(default=None)
    stripe_portal_return_url: str = Field(default="https://platform.jaydus.com/settings")
    mock_mode: bool = Field(default=False)

    # Rate Limiting
    rate_limit_requests: int = Field(default=100)
    rate_limit_window: int = Field(default=3600)  # 1 hour

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment values."""
        allowed = ["development", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of {allowed}")
        return v

    @field_validator("database_backend")
    @classmethod
    def validate_database_backend(cls, v):
        """Validate the persistence backend name."""
        allowed = ["memory", "postgres", "mongodb", "firestore"]
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"Database backend must be one of {allowed}")
        return v

    @property
    def cors_origin_list(self) -> List[str]:
        """Parse CORS origins from the comma separated setting."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def stripe_mock_mode(self) -> bool:
        """Stripe calls are simulated without a secret key or when forced."""
        return self.mock_mode or not self.stripe_secret_key


# Environment-specific configurations
class DevelopmentConfig(Settings):
    """Development environment configuration."""
    debug: bool = True
    log_level: str = "DEBUG"


class ProductionConfig(Settings):
    """Production environment configuration."""
    debug: bool = False
    log_level: str = "WARNING"

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key_production(cls, v):
        """Ensure secret key is secure in production."""
        if len(v) < 32:
            raise ValueError("Secret key must be at least 32 characters in production")
        return v


def get_settings() -> Settings:
    """Factory function to get environment-specific settings."""
    base = Settings()

    if base.environment == "production":
        return ProductionConfig()
    elif base.environment == "development":
        return DevelopmentConfig()
    else:
        return base


# Global settings instance
settings = get_settings()
