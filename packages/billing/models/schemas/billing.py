"""
API schemas for billing read endpoints.

Quantities are serialized as strings so no precision is lost in JSON.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from packages.billing.models.domain.enums import (
    BillingInterval,
    InvoiceStatus,
    LimitType,
    SubscriptionStatus,
    UsagePeriod,
    UsageResolution,
    UsageWarningStatus,
)


class BillingResponse(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class SubscriptionSummaryResponse(BillingResponse):
    id: int
    package_id: int
    status: SubscriptionStatus
    currency: str
    amount_cents: int
    billing_interval: BillingInterval
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool


class UsageSummaryResponse(BillingResponse):
    feature_key: str
    resolution: UsageResolution
    total_quantity: Decimal
    unit: str
    period_start: datetime
    period_end: datetime
    limit_type: Optional[LimitType] = None
    limit_value: Optional[int] = None
    limit_unit: Optional[str] = None
    usage_period: Optional[UsagePeriod] = None
    percentage_used: Optional[float] = Field(
        default=None, description="Share of the package limit consumed, 2 dp"
    )

    @field_serializer("total_quantity")
    def _serialize_quantity(self, value: Decimal) -> str:
        return str(value)


class FeatureWarningResponse(BillingResponse):
    feature_key: str
    status: UsageWarningStatus
    threshold_percent: int
    current_percent: float
    message: str


class InvoiceSummaryResponse(BillingResponse):
    id: int
    number: str
    status: InvoiceStatus
    currency: str
    total_cents: int
    balance_cents: int
    issued_at: datetime
    due_at: Optional[datetime] = None


class UsageOverviewResponse(BillingResponse):
    """Usage, limits and balance for one organization."""

    organization_id: str
    subscription: Optional[SubscriptionSummaryResponse] = None
    usage_summaries: list[UsageSummaryResponse] = []
    feature_warnings: list[FeatureWarningResponse] = []
    outstanding_balance_cents: int
    upcoming_invoice: Optional[InvoiceSummaryResponse] = None
    recent_invoices: list[InvoiceSummaryResponse] = []
