"""Database models for billing."""

from packages.billing.models.database.credit_memo import CreditMemoEntity
from packages.billing.models.database.invoice import InvoiceEntity, InvoiceLineEntity
from packages.billing.models.database.package import (
    FeatureLimitEntity,
    PackageEntity,
)
from packages.billing.models.database.payment_sync_event import (
    PaymentSyncEventEntity,
)
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.database.usage import (
    UsageAggregateEntity,
    UsageEventEntity,
)

__all__ = [
    "CreditMemoEntity",
    "FeatureLimitEntity",
    "InvoiceEntity",
    "InvoiceLineEntity",
    "PackageEntity",
    "PaymentSyncEventEntity",
    "SubscriptionEntity",
    "UsageAggregateEntity",
    "UsageEventEntity",
]
