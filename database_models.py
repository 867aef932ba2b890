from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UsageRecord(Base):
    """
    Per-email usage and entitlement record.
    Created lazily on the first form creation for an unseen email, never deleted.
    """
    __tablename__ = "usage_records"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    usage_count = Column(Integer, default=0, nullable=False)
    has_paid = Column(Boolean, default=False, nullable=False)
    # Set once at checkout, never overwritten
    billing_customer_id = Column(String(255), nullable=True, unique=True, index=True)
    # e.g. "active", "past_due", "canceled"
    subscription_status = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<UsageRecord(email='{self.email}', usage_count={self.usage_count})>"


class TokenRecord(Base):
    """
    Upstream OAuth tokens stored per caller-supplied correlation id.
    The most recently created row for a user_id is authoritative.
    """
    __tablename__ = "token_records"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def is_expired(self) -> bool:
        if self.expiry_date is None:
            return False
        return utcnow() >= as_utc(self.expiry_date)

    def __repr__(self) -> str:
        return f"<TokenRecord(user_id='{self.user_id}', id={self.id})>"
