"""
Pytest configuration and fixtures for testing
"""
import hashlib
import hmac
import os
import tempfile
import time
from datetime import datetime, timedelta, timezone

# Settings are read once at import time, so the test environment must be in
# place before any application module is imported
os.environ.update({
    "GOOGLE_CLIENT_ID": "test-client-id",
    "GOOGLE_CLIENT_SECRET": "test-client-secret",
    "CALLER_REDIRECT_URI": "https://agent.example.com/oauth/callback",
    "TOKEN_DELIVERY": "return",
    "FREE_QUOTA": "2",
    "QUOTA_RESET_ENABLED": "false",
    "STRIPE_SECRET_KEY": "sk_test_123",
    "STRIPE_WEBHOOK_SECRET": "whsec_test_secret",
    "STRIPE_PRICE_ID": "price_test_123",
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "LOG_DIR": os.path.join(tempfile.gettempdir(), "forms-relay-test-logs"),
})

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from deps import get_forms_gateway_factory, get_oauth_client
from services.google_oauth_client import GoogleOAuthClient, UpstreamTokens

import database_models  # noqa: F401

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_EMAIL = "user@example.com"
FORM_ID = "form-123"
FORM_LINK = "https://docs.google.com/forms/d/e/form-123/viewform"


class FakeOAuthClient(GoogleOAuthClient):
    """Real consent-URL building, canned network calls."""

    def __init__(self):
        super().__init__("test-client-id", "test-client-secret")
        self.email = TEST_EMAIL
        self.tokens = UpstreamTokens(
            access_token="ya29.access",
            refresh_token="1//refresh",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        self.exchanged = []
        self.refreshed = []
        self.userinfo_tokens = []
        self.exchange_error = None
        self.refresh_error = None
        self.userinfo_error = None

    async def exchange_code(self, code, redirect_uri):
        self.exchanged.append((code, redirect_uri))
        if self.exchange_error:
            raise self.exchange_error
        return self.tokens

    async def refresh(self, refresh_token):
        self.refreshed.append(refresh_token)
        if self.refresh_error:
            raise self.refresh_error
        return UpstreamTokens(
            access_token="ya29.refreshed",
            refresh_token=refresh_token,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )

    async def fetch_email(self, access_token):
        self.userinfo_tokens.append(access_token)
        if self.userinfo_error:
            raise self.userinfo_error
        return self.email


class FakeFormsGateway:
    """Records every remote call; fail_on names a gateway method that should raise."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.calls = []
        self.access_tokens = []
        self.forms = [{"id": FORM_ID, "name": "Customer Survey"}]

    def factory(self, access_token):
        self.access_tokens.append(access_token)
        return self

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_on == name:
            raise RuntimeError(f"{name} failed upstream")

    def call_names(self):
        return [call[0] for call in self.calls]

    async def create_form(self, title, description=None):
        self._record("create_form", title, description)
        return FORM_ID

    async def update_description(self, form_id, description):
        self._record("update_description", form_id, description)

    async def add_items(self, form_id, requests):
        self._record("add_items", form_id, requests)
        return {"replies": [{} for _ in requests]}

    async def get_responder_uri(self, form_id):
        self._record("get_responder_uri", form_id)
        return FORM_LINK

    async def list_forms(self):
        self._record("list_forms")
        return self.forms


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test; StaticPool keeps one shared connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """
    Fixture that provides an isolated, in-memory SQLite session for each test.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def oauth_client():
    return FakeOAuthClient()


@pytest.fixture
def forms_gateway():
    return FakeFormsGateway()


@pytest.fixture
async def async_client(session_factory, oauth_client, forms_gateway):
    """
    Async HTTP client against the app with database and upstream overrides.
    Startup handlers do not run under ASGITransport.
    """
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_oauth_client] = lambda: oauth_client
    app.dependency_overrides[get_forms_gateway_factory] = lambda: forms_gateway.factory

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer ya29.access"}


@pytest.fixture
def sign_webhook():
    """Build a Stripe-Signature header the way Stripe signs webhook payloads."""
    def _sign(payload: str, secret: str = "whsec_test_secret", timestamp: int = None) -> str:
        timestamp = timestamp or int(time.time())
        signed_payload = f"{timestamp}.{payload}".encode("utf-8")
        signature = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={signature}"
    return _sign
