"""
Domain models for usage events and aggregates.
"""

from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel

from packages.billing.models.domain.enums import UsageResolution, UsageSource
from packages.billing.models.domain.types import UtcDatetime


class UsageEvent(BaseModel):
    """A single metered usage event as stored."""

    id: int
    organization_id: str
    subscription_id: Optional[int] = None
    tenant_id: Optional[str] = None
    product_id: Optional[str] = None
    feature_key: str
    quantity: Decimal
    unit: str
    recorded_at: UtcDatetime
    source: UsageSource
    event_metadata: Optional[dict[str, Any]] = None
    fingerprint: Optional[str] = None
    created_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True


class UsageEventCreate(BaseModel):
    """Row the recorder inserts. subscription_id is already resolved."""

    organization_id: str
    subscription_id: Optional[int] = None
    tenant_id: Optional[str] = None
    product_id: Optional[str] = None
    feature_key: str
    quantity: Decimal
    unit: str
    recorded_at: UtcDatetime
    source: UsageSource
    event_metadata: Optional[dict[str, Any]] = None
    fingerprint: Optional[str] = None


class UsageGroupTotal(BaseModel):
    """Sum of event quantities for one (feature_key, unit) within a window."""

    feature_key: str
    unit: str
    quantity: Decimal


class UsageAggregateKey(BaseModel):
    """Composite identity of an aggregate row."""

    organization_id: str
    subscription_id: int
    feature_key: str
    resolution: UsageResolution
    period_start: UtcDatetime
    period_end: UtcDatetime

    class Config:
        frozen = True


class UsageAggregate(BaseModel):
    id: int
    organization_id: str
    subscription_id: int
    feature_key: str
    resolution: UsageResolution
    period_start: UtcDatetime
    period_end: UtcDatetime
    quantity: Decimal
    unit: str
    source: UsageSource
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True

    @property
    def key(self) -> UsageAggregateKey:
        return UsageAggregateKey(
            organization_id=self.organization_id,
            subscription_id=self.subscription_id,
            feature_key=self.feature_key,
            resolution=self.resolution,
            period_start=self.period_start,
            period_end=self.period_end,
        )
