"""
Token Service - server-side token storage for the store-tokens deployment
"""

import logging
from sqlalchemy.ext.asyncio import AsyncSession

from crud.token_record import TokenRepository
from database_models import TokenRecord
from errors import ReauthorizationRequired
from services.google_oauth_client import GoogleOAuthClient, UpstreamTokens

logger = logging.getLogger(__name__)


class TokenService:
    """
    Persists upstream tokens per caller correlation id and hands out a
    usable access token, refreshing it first when it has expired.
    """

    def __init__(self, db: AsyncSession, oauth_client: GoogleOAuthClient):
        self.db = db
        self.oauth_client = oauth_client
        self.repository = TokenRepository(db)

    async def store(self, user_id: str, tokens: UpstreamTokens) -> TokenRecord:
        record = await self.repository.replace(
            user_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expiry_date=tokens.expires_at,
        )
        logger.info(f"Stored tokens for user_id={user_id}")
        return record

    async def clear(self, user_id: str) -> None:
        removed = await self.repository.clear(user_id)
        if removed:
            logger.info(f"Cleared {removed} stored token(s) for user_id={user_id}")

    async def get_access_token(self, user_id: str) -> str:
        """
        Return a current access token for user_id.

        Raises:
            ReauthorizationRequired: nothing stored, or expired with no way to refresh
        """
        record = await self.repository.get_latest(user_id)
        if record is None:
            raise ReauthorizationRequired()

        if not record.is_expired():
            return record.access_token

        if not record.refresh_token:
            logger.info(f"Stored token expired without refresh token for user_id={user_id}")
            raise ReauthorizationRequired()

        tokens = await self.oauth_client.refresh(record.refresh_token)
        record = await self.repository.update_access_token(
            record,
            access_token=tokens.access_token,
            expiry_date=tokens.expires_at,
            refresh_token=tokens.refresh_token,
        )
        logger.info(f"Refreshed access token for user_id={user_id}")
        return record.access_token
