"""
Database entity for subscriptions.
"""

from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Boolean,
)
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class SubscriptionEntity(Base):
    """
    Organization subscription database entity.

    An organization may accumulate several subscriptions over time; the
    current one is the newest in trialing, active or past_due.
    """

    __tablename__ = "billing_subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    package_id = Column(
        BigIntegerType,
        ForeignKey("billing_packages.id"),
        nullable=False,
        index=True,
    )

    status = Column(String(32), nullable=False, index=True)
    currency = Column(String(3), nullable=False, server_default="usd")
    amount_cents = Column(Integer, nullable=False)
    billing_interval = Column(String(16), nullable=False)  # month, year

    current_period_start = Column(DateTime(timezone=True), nullable=False)
    current_period_end = Column(DateTime(timezone=True), nullable=False)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_billing_subscription_org_status", "organization_id", "status"),
    )
