"""
Configuration settings for the application
"""
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./forms_relay.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,  # Allow both field name and alias
        extra="ignore",
    )

    # Upstream Google OAuth client
    google_client_id: Optional[str] = Field(default=None, alias="GOOGLE_CLIENT_ID")
    google_client_secret: Optional[str] = Field(default=None, alias="GOOGLE_CLIENT_SECRET")

    # The agent's own redirect URI; /oauth/authorize and /oauth/token only accept this value
    caller_redirect_uri: Optional[str] = Field(default=None, alias="CALLER_REDIRECT_URI")

    # When set, Google redirects to this service's /oauth/callback, which forwards to caller_callback_url
    relay_callback_url: Optional[str] = Field(default=None, alias="RELAY_CALLBACK_URL")
    caller_callback_url: Optional[str] = Field(default=None, alias="CALLER_CALLBACK_URL")

    # "return": hand tokens back to the caller. "store": persist a TokenRecord per user_id
    token_delivery: Literal["return", "store"] = Field(default="return", alias="TOKEN_DELIVERY")

    # Quota configuration
    free_quota: int = Field(default=5, ge=0, alias="FREE_QUOTA")
    quota_reset_enabled: bool = Field(default=True, alias="QUOTA_RESET_ENABLED")
    quota_reset_cron: str = Field(default="0 0 1 * *", alias="QUOTA_RESET_CRON")

    # Form creation. forms.create only copies info.title and info.documentTitle,
    # so Google drops a description sent on create; leave this off unless that is wanted
    form_description_on_create: bool = Field(default=False, alias="FORM_DESCRIPTION_ON_CREATE")

    # Stripe billing configuration
    billing_enabled: bool = Field(default=False, alias="BILLING_ENABLED")
    stripe_secret_key: Optional[str] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: Optional[str] = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")
    stripe_price_id: Optional[str] = Field(default=None, alias="STRIPE_PRICE_ID")
    checkout_success_url: str = Field(
        default="https://example.com/success?session_id={CHECKOUT_SESSION_ID}",
        alias="CHECKOUT_SUCCESS_URL",
    )
    checkout_cancel_url: str = Field(default="https://example.com/cancel", alias="CHECKOUT_CANCEL_URL")

    # Infrastructure configuration
    database_url: Optional[str] = Field(default=DEFAULT_DATABASE_URL, alias="DATABASE_URL")
    port: int = Field(default=8080, alias="PORT")
    log_dir: str = Field(default="./logs", alias="LOG_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Render.com deployment configuration
    render: Optional[str] = Field(default=None, alias="RENDER")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")

    @property
    def upstream_redirect_uri(self) -> Optional[str]:
        """Redirect URI handed to Google: the relay's own callback when configured, else the caller's."""
        return self.relay_callback_url or self.caller_redirect_uri

    @property
    def is_production(self) -> bool:
        return bool(self.render) or (self.env or "").lower() == "production"


def validate_required_settings(config: Settings) -> None:
    """
    Fail fast when a variable needed by an enabled feature is missing.

    Raises:
        RuntimeError: naming every missing environment variable
    """
    required = {
        "GOOGLE_CLIENT_ID": config.google_client_id,
        "GOOGLE_CLIENT_SECRET": config.google_client_secret,
        "CALLER_REDIRECT_URI": config.caller_redirect_uri,
        "DATABASE_URL": config.database_url,
    }
    if config.billing_enabled:
        required.update({
            "STRIPE_SECRET_KEY": config.stripe_secret_key,
            "STRIPE_WEBHOOK_SECRET": config.stripe_webhook_secret,
            "STRIPE_PRICE_ID": config.stripe_price_id,
        })

    missing: List[str] = [name for name, value in required.items() if not value]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    if config.is_production and "sqlite" in (config.database_url or "").lower():
        raise RuntimeError("SQLite is forbidden in production. Use a PostgreSQL DATABASE_URL.")


# Instantiate settings object
settings = Settings()

LOG_DIR = Path(settings.log_dir)
