"""
TokenRepository for database operations on TokenRecord model
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, select
from database_models import TokenRecord


class TokenRepository:
    """
    Repository class for TokenRecord database operations.
    Lookups always resolve to the newest row for a user_id.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_latest(self, user_id: str) -> Optional[TokenRecord]:
        result = await self.db.execute(
            select(TokenRecord)
            .where(TokenRecord.user_id == user_id)
            .order_by(TokenRecord.created_at.desc(), TokenRecord.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def clear(self, user_id: str) -> int:
        """
        Remove every stored token for a user_id.

        Returns:
            Number of rows deleted
        """
        result = await self.db.execute(
            delete(TokenRecord).where(TokenRecord.user_id == user_id)
        )
        await self.db.commit()
        return result.rowcount

    async def replace(
        self,
        user_id: str,
        access_token: str,
        refresh_token: Optional[str],
        expiry_date: Optional[datetime],
    ) -> TokenRecord:
        """Supersede whatever is stored for user_id with a fresh record."""
        await self.db.execute(
            delete(TokenRecord).where(TokenRecord.user_id == user_id)
        )
        record = TokenRecord(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expiry_date=expiry_date,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def update_access_token(
        self,
        record: TokenRecord,
        access_token: str,
        expiry_date: Optional[datetime],
        refresh_token: Optional[str] = None,
    ) -> TokenRecord:
        record.access_token = access_token
        record.expiry_date = expiry_date
        if refresh_token:
            record.refresh_token = refresh_token
        await self.db.commit()
        await self.db.refresh(record)
        return record
