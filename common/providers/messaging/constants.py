"""Constants for messaging system."""

from enum import StrEnum


class QueueName(StrEnum):
    """Queue names for the messaging system."""

    BILLING_USAGE = "billing_usage"
    BILLING_INVOICE = "billing_invoice"
    BILLING_PAYMENT_SYNC = "billing_payment_sync"
