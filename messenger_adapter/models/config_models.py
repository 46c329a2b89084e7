"""Adapter credential models."""

from pydantic import BaseModel, ConfigDict, Field


class MessengerCredentials(BaseModel):
    """Credentials for one Messenger adapter.

    Exactly one of ``page_token`` (single page) or ``pages`` (page id to page
    token) must be set. The adapter enforces this at construction so that the
    failure surfaces as a ConfigurationError.
    """

    model_config = ConfigDict(frozen=True)

    verify_token: str = Field(..., description="Webhook verification token")
    app_secret: str = Field(..., description="Facebook App secret (HMAC key)")
    page_token: str | None = Field(
        default=None, description="Page access token (single-page mode)"
    )
    pages: dict[str, str] | None = Field(
        default=None, description="Page id to page access token (multi-page mode)"
    )

    @property
    def is_multi_page(self) -> bool:
        """True when credentials carry a page id to token mapping."""
        return self.pages is not None
