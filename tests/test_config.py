"""
Tests for settings loading and startup validation
"""
import pytest

from config.settings import Settings, validate_required_settings
from database import to_async_url

REQUIRED = {
    "GOOGLE_CLIENT_ID": "id",
    "GOOGLE_CLIENT_SECRET": "secret",
    "CALLER_REDIRECT_URI": "https://agent.example.com/cb",
    "DATABASE_URL": "sqlite+aiosqlite:///./test.db",
}


def _settings(**values):
    return Settings(_env_file=None, **{**REQUIRED, **values})


def test_complete_settings_pass_validation():
    validate_required_settings(_settings())


def test_missing_variables_are_all_named():
    config = _settings(GOOGLE_CLIENT_SECRET="", CALLER_REDIRECT_URI="")

    with pytest.raises(RuntimeError) as exc_info:
        validate_required_settings(config)

    message = str(exc_info.value)
    assert "GOOGLE_CLIENT_SECRET" in message
    assert "CALLER_REDIRECT_URI" in message
    assert "GOOGLE_CLIENT_ID" not in message


def test_billing_requires_stripe_keys():
    config = _settings(
        BILLING_ENABLED=True,
        STRIPE_SECRET_KEY="",
        STRIPE_WEBHOOK_SECRET="",
        STRIPE_PRICE_ID="",
    )

    with pytest.raises(RuntimeError) as exc_info:
        validate_required_settings(config)

    assert "STRIPE_WEBHOOK_SECRET" in str(exc_info.value)


def test_sqlite_forbidden_in_production():
    with pytest.raises(RuntimeError):
        validate_required_settings(_settings(ENV="production"))


def test_upstream_redirect_uri_prefers_relay_callback():
    assert _settings().upstream_redirect_uri == "https://agent.example.com/cb"

    config = _settings(RELAY_CALLBACK_URL="https://relay.example.com/oauth/callback")
    assert config.upstream_redirect_uri == "https://relay.example.com/oauth/callback"


def test_invalid_token_delivery_is_rejected():
    with pytest.raises(ValueError):
        _settings(TOKEN_DELIVERY="cookie")


@pytest.mark.parametrize("url,expected", [
    ("postgres://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
    ("postgresql://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
    ("sqlite:///./app.db", "sqlite+aiosqlite:///./app.db"),
    ("sqlite+aiosqlite:///./app.db", "sqlite+aiosqlite:///./app.db"),
])
def test_to_async_url(url, expected):
    assert to_async_url(url) == expected
