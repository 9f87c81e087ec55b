"""Application configuration using pydantic-settings.

All credentials come from environment variables (or a local ``.env`` file).
The application will fail to start unless at least one Google credential
path is fully configured:

- Service account: GOOGLE_SERVICE_ACCOUNT_KEY_FILE, or GOOGLE_PROJECT_ID +
  GOOGLE_PRIVATE_KEY + GOOGLE_CLIENT_EMAIL
- OAuth: GOOGLE_OAUTH_CLIENT_ID + GOOGLE_OAUTH_CLIENT_SECRET +
  GOOGLE_OAUTH_REDIRECT_URI
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars not defined in Settings
        env_ignore_empty=True,  # Blank .env lines fall back to the defaults
    )

    # Server
    port: int = 3000
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Google service account - either a key file or the individual fields
    google_project_id: str = ""
    google_private_key_id: str = ""
    google_private_key: str = ""
    google_client_email: str = ""
    google_client_id: str = ""
    google_service_account_key_file: str = ""

    # Google OAuth web client
    google_oauth_client_id: str = ""
    google_oauth_client_secret: str = ""
    google_oauth_redirect_uri: str = ""
    google_oauth_token_file: Path = Field(
        default_factory=lambda: Path.cwd() / "google-oauth-tokens.json"
    )

    # Slack
    slack_bot_token: str = ""
    slack_channel: str = ""
    slack_enable_notifications: bool = False

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def has_service_account(self) -> bool:
        """True when a key file or the individual key fields are set."""
        return bool(self.google_service_account_key_file) or bool(
            self.google_project_id and self.google_private_key and self.google_client_email
        )

    @property
    def has_oauth_client(self) -> bool:
        """True when the OAuth client id, secret and redirect URI are all set."""
        return bool(
            self.google_oauth_client_id
            and self.google_oauth_client_secret
            and self.google_oauth_redirect_uri
        )

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Validate that required settings are configured."""
        errors = []

        if not self.has_service_account and not self.has_oauth_client:
            errors.append(
                "Missing Google credentials. Provide either a service account "
                "(GOOGLE_SERVICE_ACCOUNT_KEY_FILE or GOOGLE_PROJECT_ID/GOOGLE_PRIVATE_KEY/"
                "GOOGLE_CLIENT_EMAIL) or OAuth (GOOGLE_OAUTH_CLIENT_ID/"
                "GOOGLE_OAUTH_CLIENT_SECRET/GOOGLE_OAUTH_REDIRECT_URI)"
            )

        if self.slack_enable_notifications and not self.slack_bot_token:
            errors.append("Slack notifications are enabled but SLACK_BOT_TOKEN is missing")

        if errors:
            raise ValueError("Configuration errors:\n  - " + "\n  - ".join(errors))

        return self

    @field_validator("google_private_key")
    @classmethod
    def expand_private_key_newlines(cls, v: str) -> str:
        """Private keys pasted into env vars carry literal \\n sequences."""
        return v.replace("\\n", "\n")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of: {allowed}")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known value."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v_upper


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the application.
    """
    return Settings()
