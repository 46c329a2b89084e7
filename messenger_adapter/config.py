"""Application configuration using Pydantic BaseSettings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from messenger_adapter.constants import (
    DEFAULT_WEBHOOK_PATH,
    FACEBOOK_API_TIMEOUT_SECONDS,
    FACEBOOK_GRAPH_API_VERSION,
)
from messenger_adapter.models.config_models import MessengerCredentials


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Load .env first, then .env.local (for local/test overrides)
        # Later files override earlier ones, so .env.local takes precedence
        env_file=[".env", ".env.local"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        # Blank lines such as FACEBOOK_PAGE_ACCESS_TOKEN= mean "not set"
        env_ignore_empty=True,
    )

    # Facebook Configuration
    facebook_verify_token: str = Field(..., description="Webhook verification token")
    facebook_app_secret: str = Field(
        ..., description="Facebook App secret used to verify webhook signatures"
    )
    facebook_page_access_token: str | None = Field(
        default=None, description="Facebook Page access token (single-page mode)"
    )
    # JSON object in the environment, e.g. {"PAGE_ID": "PAGE_TOKEN"}
    facebook_page_tokens: dict[str, str] | None = Field(
        default=None,
        description="Page id to Page access token mapping (multi-page mode)",
    )
    facebook_bot_id: str | None = Field(
        default=None,
        description="Page id this adapter represents (learned from traffic if unset)",
    )

    # Webhook / Graph API
    webhook_path: str = Field(
        default=DEFAULT_WEBHOOK_PATH, description="Mount point of the webhook router"
    )
    graph_api_version: str = Field(
        default=FACEBOOK_GRAPH_API_VERSION, description="Facebook Graph API version"
    )
    facebook_api_timeout_seconds: float = Field(
        default=FACEBOOK_API_TIMEOUT_SECONDS,
        description="Timeout for Facebook Graph API calls (seconds)",
    )

    # Environment
    env: Literal["local", "railway", "prod"] = Field(
        default="local", description="Current environment"
    )
    log_level: str = Field(default="INFO", description="Python logging level")

    # Sentry Configuration
    sentry_dsn: str | None = Field(
        default=None, description="Sentry DSN for error tracking (optional)"
    )
    sentry_traces_sample_rate: float = Field(
        default=1.0, description="Sentry traces sample rate (0.0 to 1.0)"
    )

    # Logfire Configuration
    logfire_token: str | None = Field(
        default=None, description="Pydantic Logfire token for observability"
    )

    def to_credentials(self) -> MessengerCredentials:
        """Build adapter credentials from the Facebook settings."""
        return MessengerCredentials(
            verify_token=self.facebook_verify_token,
            app_secret=self.facebook_app_secret,
            page_token=self.facebook_page_access_token or None,
            pages=self.facebook_page_tokens,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
