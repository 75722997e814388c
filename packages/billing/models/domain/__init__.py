"""Domain models for billing."""

from packages.billing.models.domain.invoice import (
    CreditMemo,
    CreditMemoCreate,
    Invoice,
    InvoiceCreate,
    InvoiceLine,
    InvoiceLineCreate,
    InvoiceStatusUpdate,
)
from packages.billing.models.domain.overview import (
    FeatureWarning,
    UsageOverview,
    UsageSummary,
)
from packages.billing.models.domain.package import FeatureLimit, Package
from packages.billing.models.domain.payment_sync import (
    PaymentSyncEvent,
    PaymentSyncEventCreate,
)
from packages.billing.models.domain.subscription import Subscription
from packages.billing.models.domain.usage import (
    UsageAggregate,
    UsageAggregateKey,
    UsageEvent,
    UsageEventCreate,
    UsageGroupTotal,
)

__all__ = [
    "CreditMemo",
    "CreditMemoCreate",
    "FeatureLimit",
    "FeatureWarning",
    "Invoice",
    "InvoiceCreate",
    "InvoiceLine",
    "InvoiceLineCreate",
    "InvoiceStatusUpdate",
    "Package",
    "PaymentSyncEvent",
    "PaymentSyncEventCreate",
    "Subscription",
    "UsageAggregate",
    "UsageAggregateKey",
    "UsageEvent",
    "UsageEventCreate",
    "UsageGroupTotal",
    "UsageOverview",
    "UsageSummary",
]
