"""Billing repositories."""

from packages.billing.repositories.invoice_repository import (
    CreditMemoRepository,
    InvoiceLineRepository,
    InvoiceRepository,
)
from packages.billing.repositories.package_repository import PackageRepository
from packages.billing.repositories.payment_sync_event_repository import (
    PaymentSyncEventRepository,
)
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.usage_repository import (
    UsageAggregateRepository,
    UsageEventRepository,
)

__all__ = [
    "CreditMemoRepository",
    "InvoiceLineRepository",
    "InvoiceRepository",
    "PackageRepository",
    "PaymentSyncEventRepository",
    "SubscriptionRepository",
    "UsageAggregateRepository",
    "UsageEventRepository",
]
