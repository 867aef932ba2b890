"""
Authorization Relay - brokers the OAuth2 authorization-code handshake between
an agent and Google.

Flow:
    1. begin_authorization(): agent sends the user here; we redirect to Google
       with the agent's redirect URI (or our own callback) and its state.
    2. relay_callback(): only when we own the redirect target; forwards
       code + state to the agent's callback.
    3. exchange_token(): agent posts the code; we trade it with Google and
       either return the tokens or keep them server-side.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from authlib.common.urls import add_params_to_uri
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import Settings
from errors import (
    InvalidCallback,
    InvalidClient,
    InvalidRedirect,
    InvalidRequest,
    UnsupportedGrantType,
)
from services.google_oauth_client import GoogleOAuthClient
from services.token_service import TokenService

logger = logging.getLogger(__name__)


class AuthorizationRelay:

    def __init__(self, db: AsyncSession, oauth_client: GoogleOAuthClient, config: Settings):
        self.db = db
        self.oauth_client = oauth_client
        self.config = config

    def _check_redirect_uri(self, redirect_uri: str) -> None:
        if redirect_uri != self.config.caller_redirect_uri:
            logger.error("Invalid redirect_uri")
            raise InvalidRedirect()

    async def begin_authorization(
        self,
        redirect_uri: Optional[str],
        state: Optional[str],
        user_id: Optional[str] = None,
    ) -> str:
        """
        Validate the agent's request and build the upstream consent URL.

        Returns:
            URL to redirect the user agent to
        """
        if not redirect_uri or not state:
            logger.error("Missing redirect_uri or state")
            raise InvalidRequest("redirect_uri and state are required")
        self._check_redirect_uri(redirect_uri)

        if user_id:
            await TokenService(self.db, self.oauth_client).clear(user_id)

        auth_url = self.oauth_client.authorization_url(
            redirect_uri=self.config.upstream_redirect_uri, state=state
        )
        logger.info(f"Redirecting to Google consent (relay callback: {bool(self.config.relay_callback_url)})")
        return auth_url

    def relay_callback(self, code: Optional[str], state: Optional[str]) -> str:
        """
        Forward Google's code and the echoed state to the agent's callback.

        Returns:
            Caller callback URL carrying code and state
        """
        if not self.config.relay_callback_url:
            # Google was sent straight to the caller, nothing should land here
            raise InvalidCallback("Invalid request")
        if not code or not state:
            logger.error("Callback missing code or state")
            raise InvalidCallback()

        target = self.config.caller_callback_url or self.config.caller_redirect_uri
        return add_params_to_uri(target, [("code", code), ("state", state)])

    async def exchange_token(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Validate a token request and trade the code with Google.

        Args:
            params: token request fields (form or JSON body)

        Returns:
            Bearer token response, or a stored acknowledgement in store mode
        """
        # Field names only; values may be codes or secrets
        logger.info(f"Token request fields: {sorted(params.keys())}")

        code = params.get("code")
        grant_type = params.get("grant_type")
        redirect_uri = params.get("redirect_uri")
        client_id = params.get("client_id")
        client_secret = params.get("client_secret")

        if not grant_type:
            raise InvalidRequest("Missing grant_type parameter")
        if grant_type != "authorization_code":
            raise UnsupportedGrantType()
        if not code:
            raise InvalidRequest("Missing code parameter")
        if not redirect_uri:
            raise InvalidRequest("Missing redirect_uri parameter")
        self._check_redirect_uri(redirect_uri)

        if client_id is not None or client_secret is not None:
            if client_id != self.config.google_client_id or client_secret != self.config.google_client_secret:
                logger.error("Client credentials do not match")
                raise InvalidClient()

        user_id = params.get("user_id") or params.get("userId")
        store = self.config.token_delivery == "store"
        if store and not user_id:
            raise InvalidRequest("Missing user_id parameter")

        tokens = await self.oauth_client.exchange_code(
            code, redirect_uri=self.config.upstream_redirect_uri
        )

        if store:
            await TokenService(self.db, self.oauth_client).store(user_id, tokens)
            return {"status": "stored", "user_id": user_id}

        return {
            "access_token": tokens.access_token,
            "token_type": "Bearer",
            "expires_in": tokens.expires_in(),
            "refresh_token": tokens.refresh_token,
        }
