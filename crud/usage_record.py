"""
UsageRepository for database operations on UsageRecord model
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from database_models import UsageRecord


class UsageRepository:
    """
    Repository class for UsageRecord database operations.
    Encapsulates all database logic for the UsageRecord model.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_by_email(self, email: str) -> Optional[UsageRecord]:
        """
        Retrieve a usage record by email address.

        Args:
            email: User's email address (case-insensitive search)

        Returns:
            UsageRecord if found, None otherwise
        """
        result = await self.db.execute(
            select(UsageRecord).where(UsageRecord.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_by_billing_customer_id(self, customer_id: str) -> Optional[UsageRecord]:
        result = await self.db.execute(
            select(UsageRecord).where(UsageRecord.billing_customer_id == customer_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, email: str) -> UsageRecord:
        """
        Load the record for an email, creating it with default counters if unseen.

        A concurrent request may insert the same email between the lookup and
        the insert; the unique constraint rejects ours and the winner's row is
        returned instead.
        """
        record = await self.get_by_email(email)
        if record:
            return record

        record = UsageRecord(email=email.lower(), usage_count=0, has_paid=False)
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return await self.get_by_email(email)
        await self.db.refresh(record)
        return record

    async def increment_usage(self, email: str) -> int:
        """
        Atomically add one to usage_count for an email.

        Returns:
            The new usage count
        """
        await self.db.execute(
            update(UsageRecord)
            .where(UsageRecord.email == email.lower())
            .values(usage_count=UsageRecord.usage_count + 1)
        )
        await self.db.commit()
        record = await self.get_by_email(email)
        await self.db.refresh(record)
        return record.usage_count

    async def set_billing_customer_id(self, record: UsageRecord, customer_id: str) -> UsageRecord:
        """Attach a billing customer id; an id that is already set is never replaced."""
        if record.billing_customer_id:
            return record
        record.billing_customer_id = customer_id
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def update_entitlement(
        self, record: UsageRecord, subscription_status: str, has_paid: bool
    ) -> UsageRecord:
        record.subscription_status = subscription_status
        record.has_paid = has_paid
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def reset_all_usage(self) -> int:
        """
        Set usage_count to 0 on every record, leaving entitlement fields alone.

        Returns:
            Number of rows updated
        """
        result = await self.db.execute(update(UsageRecord).values(usage_count=0))
        await self.db.commit()
        return result.rowcount
