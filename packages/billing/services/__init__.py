"""Billing services."""

from packages.billing.services.billing_job_service import BillingJobService
from packages.billing.services.invoice_builder_service import InvoiceBuilderService
from packages.billing.services.payment_sync_service import PaymentSyncService
from packages.billing.services.usage_aggregation_service import (
    UsageAggregationService,
)
from packages.billing.services.usage_recorder_service import UsageRecorderService
from packages.billing.services.usage_summary_service import UsageSummaryService

__all__ = [
    "BillingJobService",
    "InvoiceBuilderService",
    "PaymentSyncService",
    "UsageAggregationService",
    "UsageRecorderService",
    "UsageSummaryService",
]
