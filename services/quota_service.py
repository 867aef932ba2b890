"""
Quota Service for gating billable actions on free usage and subscription state
"""
import logging
from sqlalchemy.ext.asyncio import AsyncSession

from crud.usage_record import UsageRepository
from database_models import UsageRecord
from errors import QuotaExceeded

logger = logging.getLogger(__name__)


class QuotaGate:
    """
    Decides whether an email may perform another billable action.

    check() runs before the action and creates the usage record on first
    sight; record_success() runs only after the action succeeded, so a
    failed action never consumes quota.
    """

    def __init__(self, db: AsyncSession, free_quota: int):
        self.repository = UsageRepository(db)
        self.free_quota = free_quota

    @staticmethod
    def is_entitled(record: UsageRecord) -> bool:
        """Paid access: either flag set by the billing webhook counts."""
        return bool(record.has_paid) or record.subscription_status == "active"

    def allows(self, record: UsageRecord) -> bool:
        return self.is_entitled(record) or record.usage_count < self.free_quota

    async def check(self, email: str) -> UsageRecord:
        """
        Load or create the usage record and enforce the quota.

        Raises:
            QuotaExceeded: free quota used up and no active subscription
        """
        record = await self.repository.get_or_create(email)
        if not self.allows(record):
            logger.info(
                f"Quota exhausted for {email}: usage_count={record.usage_count}, "
                f"free_quota={self.free_quota}, subscription_status={record.subscription_status}"
            )
            raise QuotaExceeded()
        return record

    async def record_success(self, email: str) -> int:
        usage_count = await self.repository.increment_usage(email)
        logger.info(f"Usage for {email} is now {usage_count}")
        return usage_count
