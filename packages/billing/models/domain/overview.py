"""
Domain models for the organization usage overview.
"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel

from packages.billing.models.domain.enums import (
    LimitType,
    UsagePeriod,
    UsageResolution,
    UsageWarningStatus,
)
from packages.billing.models.domain.invoice import Invoice
from packages.billing.models.domain.subscription import Subscription
from packages.billing.models.domain.types import UtcDatetime

USAGE_WARNING_THRESHOLD_PERCENT = 80


class UsageSummary(BaseModel):
    """One aggregate window joined with the package limit for its feature."""

    feature_key: str
    resolution: UsageResolution
    total_quantity: Decimal
    unit: str
    period_start: UtcDatetime
    period_end: UtcDatetime
    limit_type: Optional[LimitType] = None
    limit_value: Optional[int] = None
    limit_unit: Optional[str] = None
    usage_period: Optional[UsagePeriod] = None
    percentage_used: Optional[float] = None


class FeatureWarning(BaseModel):
    feature_key: str
    status: UsageWarningStatus
    threshold_percent: int = USAGE_WARNING_THRESHOLD_PERCENT
    current_percent: float
    message: str


class UsageOverview(BaseModel):
    organization_id: str
    subscription: Optional[Subscription] = None
    usage_summaries: list[UsageSummary] = []
    feature_warnings: list[FeatureWarning] = []
    outstanding_balance_cents: int = 0
    upcoming_invoice: Optional[Invoice] = None
    recent_invoices: list[Invoice] = []
