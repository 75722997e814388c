"""
Database entities for metered usage.
"""

from sqlalchemy import Column, String, DateTime, Index, JSON, UniqueConstraint
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, DecimalType


class UsageEventEntity(Base):
    """
    Raw usage event database entity.

    Append-only, one row per reported event. High volume table.
    Fingerprinted events are unique per organization; events without a
    fingerprint never collide.
    """

    __tablename__ = "billing_usage_events"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    subscription_id = Column(BigIntegerType, nullable=True, index=True)
    tenant_id = Column(String(64), nullable=True)
    product_id = Column(String(64), nullable=True)

    feature_key = Column(String(128), nullable=False)
    quantity = Column(DecimalType, nullable=False)
    unit = Column(String(64), nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False)
    source = Column(String(32), nullable=False)  # portal, product-app, admin, worker, api

    event_metadata = Column("metadata", JSON, nullable=True)
    fingerprint = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "fingerprint", name="uq_billing_usage_event_fingerprint"
        ),
        Index(
            "idx_billing_usage_event_window",
            "organization_id",
            "subscription_id",
            "recorded_at",
        ),
    )


class UsageAggregateEntity(Base):
    """
    Usage rolled up per feature over one exact window.

    Rows are replaced wholesale by the aggregator, keyed on
    (organization, subscription, feature, resolution, window).
    """

    __tablename__ = "billing_usage_aggregates"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    subscription_id = Column(BigIntegerType, nullable=False, index=True)
    feature_key = Column(String(128), nullable=False)
    resolution = Column(String(16), nullable=False)  # hourly, daily, weekly, monthly
    period_start = Column(DateTime(timezone=True), nullable=False)
    period_end = Column(DateTime(timezone=True), nullable=False)

    quantity = Column(DecimalType, nullable=False)
    unit = Column(String(64), nullable=False)
    source = Column(String(32), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "subscription_id",
            "feature_key",
            "resolution",
            "period_start",
            "period_end",
            name="uq_billing_usage_aggregate_window",
        ),
        Index(
            "idx_billing_usage_aggregate_period",
            "organization_id",
            "resolution",
            "period_start",
        ),
    )
