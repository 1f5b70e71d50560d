"""Configuration management using Pydantic Settings."""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational backend configuration settings."""

    url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy async database URL (postgresql+asyncpg:// or sqlite+aiosqlite://)",
    )
    use_db: Optional[bool] = Field(
        default=None,
        description="Force the relational backend on or off; auto-detected from url when unset",
    )
    pool_size: int = Field(default=10, ge=1, le=100, description="Database connection pool size")
    max_overflow: int = Field(
        default=20,
        ge=0,
        le=100,
        description="Maximum number of connections that can be created beyond pool_size",
    )
    pool_timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Timeout in seconds for getting a connection from the pool",
    )
    echo: bool = Field(default=False, description="Enable SQLAlchemy query logging")

    model_config = SettingsConfigDict(env_prefix="DATABASE_", case_sensitive=False)

    @property
    def enabled(self) -> bool:
        """Whether DAOs should be backed by the relational store."""
        if self.use_db is not None:
            return self.use_db and bool(self.url)
        return bool(self.url)


class SettingsFileSettings(BaseSettings):
    """Location of the JSON settings document used in file mode."""

    path: str = Field(default="mcp_settings.json", description="Path of the settings document")

    model_config = SettingsConfigDict(env_prefix="SETTINGS_", case_sensitive=False)


class OAuthServerSettings(BaseSettings):
    """Authorization server configuration settings."""

    enabled: bool = Field(default=True, description="Enable the OAuth authorization server")
    access_token_lifetime: int = Field(
        default=3600, ge=1, description="Access token lifetime in seconds"
    )
    refresh_token_lifetime: int = Field(
        default=1209600, ge=1, description="Refresh token lifetime in seconds (14 days)"
    )
    authorization_code_lifetime: int = Field(
        default=300, ge=1, le=3600, description="Authorization code lifetime in seconds"
    )
    require_client_secret: bool = Field(
        default=False,
        description="Require client_secret for confidential clients on the token endpoint",
    )
    allowed_scopes: List[str] = Field(
        default=["read", "write"], description="Scopes a client may be granted"
    )
    rotate_refresh_token: bool = Field(
        default=True, description="Issue a new refresh token on every refresh grant"
    )
    cleanup_interval: int = Field(
        default=300, ge=1, description="Expired token sweep interval in seconds"
    )
    dynamic_registration_enabled: bool = Field(
        default=False, description="Expose RFC 7591 dynamic client registration"
    )
    dynamic_registration_allowed_grants: List[str] = Field(
        default=["authorization_code", "refresh_token"],
        description="Grant types a dynamically registered client may request",
    )
    registration_token_lifetime: int = Field(
        default=2592000, ge=1, description="Registration access token lifetime in seconds (30 days)"
    )

    @field_validator("allowed_scopes", "dynamic_registration_allowed_grants", mode="before")
    @classmethod
    def parse_scopes(cls, v):
        """Parse comma or space separated values into a list."""
        if isinstance(v, str):
            return [scope for scope in v.replace(",", " ").split() if scope]
        return v

    model_config = SettingsConfigDict(env_prefix="OAUTH_SERVER_", case_sensitive=False)


class SessionTokenSettings(BaseSettings):
    """Session token configuration for the administrative surface."""

    secret: str = Field(
        default="change-me-session-token-secret-please",
        min_length=32,
        description="Secret key for signing session tokens",
    )
    expiry: int = Field(
        default=86400,
        ge=60,
        description="Session token expiry time in seconds (default: 24 hours)",
    )

    model_config = SettingsConfigDict(env_prefix="SESSION_TOKEN_", case_sensitive=False)


class CORSSettings(BaseSettings):
    """CORS configuration settings."""

    origins: List[str] = Field(
        default=["http://localhost:3000"], description="Allowed CORS origins"
    )
    allow_credentials: bool = Field(default=True, description="Allow credentials in CORS requests")

    @field_validator("origins", mode="before")
    @classmethod
    def parse_origins(cls, v):
        """Parse comma-separated origins string into list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    model_config = SettingsConfigDict(env_prefix="CORS_", case_sensitive=False)


class AppSettings(BaseSettings):
    """Main application settings that aggregates all configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Application metadata
    app_name: str = Field(default="Hub Auth Service", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    port: int = Field(default=3000, ge=1, le=65535, description="Application port")
    environment: str = Field(
        default="production", description="Runtime environment (production, development, test)"
    )
    skip_auth: bool = Field(
        default=False, description="Skip administrative authentication entirely"
    )
    base_url: Optional[str] = Field(
        default=None, description="Public base URL used as the OAuth issuer"
    )

    # Nested configuration settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    settings_file: SettingsFileSettings = Field(default_factory=SettingsFileSettings)
    oauth_server: OAuthServerSettings = Field(default_factory=OAuthServerSettings)
    session_token: SessionTokenSettings = Field(default_factory=SessionTokenSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed_levels:
            raise ValueError(f"Log level must be one of {allowed_levels}, got '{v}'")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment name."""
        allowed = ["production", "development", "test"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"Environment must be one of {allowed}, got '{v}'")
        return v_lower

    @property
    def is_test(self) -> bool:
        return self.environment == "test"


# Global settings instance
_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """
    Get the global settings instance.

    Settings are loaded once from the environment (and `.env`) and reused
    across the application.

    Returns:
        AppSettings: The application settings instance

    Raises:
        ValidationError: If environment variables are invalid
    """
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reset_settings() -> None:
    """
    Reset the global settings instance.

    This is primarily useful for testing purposes to reload settings
    with different environment variables.
    """
    global _settings
    _settings = None
