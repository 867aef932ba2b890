"""
Google OAuth Client - thin wrapper over the upstream OAuth 2.0 endpoints.

A client holds only the static app credentials; every network call opens its
own httpx client, so nothing credentialed is shared between requests.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri

from errors import IdentityUnavailable, ReauthorizationRequired, UpstreamExchangeFailed

logger = logging.getLogger(__name__)

AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

# Requested on every authorization
GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/forms",
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/drive.metadata.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
]

DEFAULT_EXPIRES_IN = 3600


@dataclass
class UpstreamTokens:
    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_token_response(cls, token: Mapping[str, Any]) -> "UpstreamTokens":
        expires_at = None
        if token.get("expires_at"):
            expires_at = datetime.fromtimestamp(int(token["expires_at"]), tz=timezone.utc)
        return cls(
            access_token=token["access_token"],
            token_type=token.get("token_type") or "Bearer",
            refresh_token=token.get("refresh_token"),
            expires_at=expires_at,
        )

    def expires_in(self, now: Optional[datetime] = None) -> int:
        if self.expires_at is None:
            return DEFAULT_EXPIRES_IN
        now = now or datetime.now(timezone.utc)
        return max(0, int((self.expires_at - now).total_seconds()))


class GoogleOAuthClient:
    """
    Upstream OAuth operations used by the relay.

    Example Usage:
        client = GoogleOAuthClient(client_id, client_secret)
        url = client.authorization_url(redirect_uri, state)
        tokens = await client.exchange_code(code, redirect_uri)
        email = await client.fetch_email(tokens.access_token)
    """

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.transport = transport

    def _session(self, redirect_uri: Optional[str] = None) -> AsyncOAuth2Client:
        return AsyncOAuth2Client(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=redirect_uri,
            token_endpoint_auth_method="client_secret_post",
            transport=self.transport,
        )

    def authorization_url(self, redirect_uri: str, state: str) -> str:
        """
        Consent URL for the fixed scope set. The caller's state is passed
        through untouched and re-consent is always forced so Google issues
        a refresh token.
        """
        return prepare_grant_uri(
            AUTHORIZATION_URL,
            client_id=self.client_id,
            response_type="code",
            redirect_uri=redirect_uri,
            scope=GOOGLE_SCOPES,
            state=state,
            access_type="offline",
            prompt="consent",
        )

    async def exchange_code(self, code: str, redirect_uri: str) -> UpstreamTokens:
        """
        Exchange an authorization code for tokens.

        Raises:
            UpstreamExchangeFailed: Google rejected the code or was unreachable
        """
        try:
            async with self._session(redirect_uri) as session:
                token = await session.fetch_token(
                    TOKEN_URL, code=code, grant_type="authorization_code"
                )
        except OAuthError as e:
            logger.error(f"Token exchange rejected by Google: {e.error}")
            raise UpstreamExchangeFailed()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Token exchange failed: {type(e).__name__}: {e}")
            raise UpstreamExchangeFailed()

        tokens = UpstreamTokens.from_token_response(token)
        logger.info(
            "Obtained Google tokens",
            extra={"has_refresh_token": tokens.refresh_token is not None},
        )
        return tokens

    async def refresh(self, refresh_token: str) -> UpstreamTokens:
        """
        Use a stored refresh token to mint a new access token.

        Raises:
            ReauthorizationRequired: the refresh token was revoked or expired
            UpstreamExchangeFailed: Google was unreachable
        """
        try:
            async with self._session() as session:
                token = await session.refresh_token(TOKEN_URL, refresh_token=refresh_token)
        except OAuthError as e:
            logger.warning(f"Refresh rejected by Google: {e.error}")
            raise ReauthorizationRequired()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Token refresh failed: {type(e).__name__}: {e}")
            raise UpstreamExchangeFailed("Failed to refresh access token")

        tokens = UpstreamTokens.from_token_response(token)
        # Google usually omits refresh_token on refresh
        if not tokens.refresh_token:
            tokens.refresh_token = refresh_token
        return tokens

    async def fetch_email(self, access_token: str) -> str:
        """
        Resolve the email of the account behind an access token.

        Raises:
            ReauthorizationRequired: Google rejected the token
            IdentityUnavailable: no email came back
        """
        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.get(
                    USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
            except httpx.RequestError as e:
                logger.error(f"Network error fetching user info: {e}")
                raise UpstreamExchangeFailed("Failed to retrieve user info")

        if response.status_code == 401:
            raise ReauthorizationRequired()
        if response.status_code != 200:
            logger.error(f"Userinfo request failed with status {response.status_code}")
            raise IdentityUnavailable()

        email = response.json().get("email")
        if not email:
            raise IdentityUnavailable()
        return email.lower()
