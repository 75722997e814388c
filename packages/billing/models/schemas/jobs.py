"""
Job payload schemas for the billing pipeline.

Every queue message and internal request is validated against one of these
before anything touches the database. Payloads are camelCase on the wire;
enum values are accepted in any case.
"""

from decimal import Decimal
from typing import Annotated, Any, Optional
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from packages.billing.models.domain.enums import (
    CreditReason,
    InvoiceLineType,
    InvoiceStatus,
    PaymentSyncAction,
    PaymentSyncEventType,
    UsageResolution,
    UsageSource,
)
from packages.billing.models.domain.types import UtcDatetime


def _lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


CaseInsensitive = BeforeValidator(_lower)


def _source_slug(value: Any) -> Any:
    return value.lower().replace("_", "-") if isinstance(value, str) else value


# Sources are hyphenated on the wire; PRODUCT_APP and product_app are accepted too
SourceSlug = BeforeValidator(_source_slug)


class JobSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PeriodJobSchema(JobSchema):
    period_start: UtcDatetime
    period_end: UtcDatetime


# ============================================================================
# Usage Recording
# ============================================================================


class UsageEventInput(JobSchema):
    organization_id: str = Field(..., min_length=1)
    subscription_id: Optional[int] = None
    tenant_id: Optional[str] = Field(default=None, min_length=1)
    product_id: Optional[str] = Field(default=None, min_length=1)
    feature_key: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., ge=0, allow_inf_nan=False)
    unit: str = Field(..., min_length=1)
    recorded_at: Optional[UtcDatetime] = None
    source: Annotated[UsageSource, SourceSlug] = UsageSource.API
    metadata: Optional[dict[str, Any]] = None
    fingerprint: Optional[str] = Field(default=None, min_length=1)


class UsageEventBatch(JobSchema):
    events: list[UsageEventInput] = Field(..., min_length=1)


class UsageRecordResult(JobSchema):
    accepted: int


# ============================================================================
# Usage Aggregation
# ============================================================================


class UsageAggregateJob(PeriodJobSchema):
    organization_id: str = Field(..., min_length=1)
    subscription_id: int
    resolution: Annotated[UsageResolution, CaseInsensitive] = UsageResolution.DAILY
    source: Annotated[UsageSource, SourceSlug] = UsageSource.WORKER
    feature_keys: Optional[list[str]] = None
    backfill: bool = False
    context: Optional[dict[str, Any]] = None


class UsageAggregateResult(JobSchema):
    aggregated: int
    duration_ms: float


class UsageBackfillRequest(PeriodJobSchema):
    """Re-aggregate a range by enqueuing one aggregation job per window."""

    organization_id: str = Field(..., min_length=1)
    subscription_id: int
    resolution: Annotated[UsageResolution, CaseInsensitive] = UsageResolution.DAILY
    feature_keys: Optional[list[str]] = None
    initiated_by: str = Field(default="api", min_length=1)


class UsageBackfillResponse(JobSchema):
    queue: str
    enqueued: int
    idempotency_keys: list[str]


# ============================================================================
# Invoice Building
# ============================================================================


class UsageChargeSpec(JobSchema):
    feature_key: str = Field(..., min_length=1)
    unit_amount_cents: int = Field(..., ge=0)
    unit: str = Field(..., min_length=1)
    description: Optional[str] = None
    minimum_amount_cents: Optional[int] = Field(default=None, ge=0)
    resolution: Annotated[UsageResolution, CaseInsensitive] = UsageResolution.DAILY
    usage_period_start: Optional[UtcDatetime] = None
    usage_period_end: Optional[UtcDatetime] = None


class ExtraLineSpec(JobSchema):
    line_type: Annotated[InvoiceLineType, CaseInsensitive] = (
        InvoiceLineType.ADJUSTMENT
    )
    description: Optional[str] = None
    feature_key: Optional[str] = None
    quantity: Decimal = Field(default=Decimal(1), allow_inf_nan=False)
    unit_amount_cents: int
    amount_cents: int
    usage_period_start: Optional[UtcDatetime] = None
    usage_period_end: Optional[UtcDatetime] = None
    metadata: Optional[dict[str, Any]] = None


class SettleSpec(JobSchema):
    amount_cents: Optional[int] = Field(default=None, ge=0)
    paid_at: Optional[UtcDatetime] = None


class InvoiceJob(PeriodJobSchema):
    organization_id: str = Field(..., min_length=1)
    subscription_id: Optional[int] = None
    invoice_number: Optional[str] = Field(default=None, min_length=1)
    currency: Optional[Annotated[str, CaseInsensitive]] = Field(
        default=None, min_length=3, max_length=3
    )
    recurring_amount_cents: Optional[int] = Field(default=None, ge=0)
    recurring_description: Optional[str] = None
    status: Annotated[InvoiceStatus, CaseInsensitive] = InvoiceStatus.OPEN
    issue_date: Optional[UtcDatetime] = None
    due_date: Optional[UtcDatetime] = None
    tax_rate_bps: Optional[int] = Field(default=None, ge=0, le=10000)
    tax_cents: Optional[int] = Field(default=None, ge=0)
    metadata: Optional[dict[str, Any]] = None
    usage_charges: list[UsageChargeSpec] = []
    extra_lines: list[ExtraLineSpec] = []
    settle: Optional[SettleSpec] = None


class InvoiceBuildResult(JobSchema):
    invoice_id: int
    status: InvoiceStatus
    subtotal_cents: int
    tax_cents: int
    total_cents: int
    line_count: int
    duration_ms: float


# ============================================================================
# Payment Sync
# ============================================================================


class CreditSpec(JobSchema):
    amount_cents: int = Field(..., ge=0)
    reason: Optional[Annotated[CreditReason, CaseInsensitive]] = None
    metadata: Optional[dict[str, Any]] = None


class PaymentSyncJob(JobSchema):
    organization_id: str = Field(..., min_length=1)
    invoice_id: int
    event: Annotated[PaymentSyncEventType, CaseInsensitive]
    amount_cents: Optional[int] = Field(default=None, ge=0)
    paid_at: Optional[UtcDatetime] = None
    status: Optional[Annotated[InvoiceStatus, CaseInsensitive]] = None
    external_payment_id: Optional[str] = Field(default=None, min_length=1)
    metadata: Optional[dict[str, Any]] = None
    note: Optional[str] = None
    credit: Optional[CreditSpec] = None


class PaymentSyncResult(JobSchema):
    invoice_id: int
    status: InvoiceStatus
    action: PaymentSyncAction
    duration_ms: float
    replayed: bool = False


# ============================================================================
# Dispatch
# ============================================================================


class JobEnqueuedResponse(JobSchema):
    queue: str
    idempotency_key: str
