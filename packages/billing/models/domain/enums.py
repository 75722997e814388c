"""
Billing enums - strongly typed enumerations for usage, subscription and invoice states.
"""

from enum import Enum


class UsageSource(str, Enum):
    """Where a usage event was reported from."""

    PORTAL = "portal"
    PRODUCT_APP = "product-app"
    ADMIN = "admin"
    WORKER = "worker"
    API = "api"


class UsageResolution(str, Enum):
    """Granularity of a usage aggregate window."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class LimitType(str, Enum):
    HARD = "hard"
    SOFT = "soft"
    UNLIMITED = "unlimited"


class UsagePeriod(str, Enum):
    """Window a feature limit is measured over."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    BILLING_PERIOD = "billing_period"


class SubscriptionStatus(str, Enum):
    """
    Subscription status lifecycle.

    Flow: trialing -> active -> past_due -> canceled
    """

    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"  # Payment failed, still billable
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"

    @classmethod
    def active_statuses(cls) -> tuple["SubscriptionStatus", ...]:
        """Statuses that count as the organization's current subscription."""
        return (cls.TRIALING, cls.ACTIVE, cls.PAST_DUE)

    def is_active(self) -> bool:
        return self in SubscriptionStatus.active_statuses()


class BillingInterval(str, Enum):
    MONTH = "month"
    YEAR = "year"

    def describe(self) -> str:
        """Default description of the recurring invoice line."""
        return f"{self.value}ly subscription"


class InvoiceStatus(str, Enum):
    """
    Invoice lifecycle.

    Flow: draft -> open -> paid | uncollectible | void
    """

    DRAFT = "draft"
    OPEN = "open"
    PAID = "paid"
    VOID = "void"
    UNCOLLECTIBLE = "uncollectible"

    @classmethod
    def outstanding_statuses(cls) -> tuple["InvoiceStatus", ...]:
        """Statuses whose balance is still owed."""
        return (cls.OPEN, cls.UNCOLLECTIBLE)


class InvoiceLineType(str, Enum):
    RECURRING = "recurring"
    USAGE = "usage"
    ONE_TIME = "one_time"
    CREDIT = "credit"
    TAX = "tax"
    ADJUSTMENT = "adjustment"


class CreditReason(str, Enum):
    ADJUSTMENT = "adjustment"
    REFUND = "refund"
    PROMOTION = "promotion"
    SERVICE_FAILURE = "service_failure"
    OTHER = "other"


class PaymentSyncEventType(str, Enum):
    """External payment outcomes the payment sync engine understands."""

    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_DISPUTED = "payment_disputed"
    PAYMENT_REFUNDED = "payment_refunded"
    SYNC_STATUS = "sync_status"

    def action(self) -> "PaymentSyncAction":
        """Action a successfully applied event of this type reports."""
        if self == PaymentSyncEventType.PAYMENT_SUCCEEDED:
            return PaymentSyncAction.PAYMENT_RECORDED
        if self in (
            PaymentSyncEventType.PAYMENT_DISPUTED,
            PaymentSyncEventType.PAYMENT_REFUNDED,
        ):
            return PaymentSyncAction.CREDIT_ISSUED
        return PaymentSyncAction.STATUS_UPDATED


class PaymentSyncAction(str, Enum):
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    STATUS_UPDATED = "STATUS_UPDATED"
    CREDIT_ISSUED = "CREDIT_ISSUED"


class UsageWarningStatus(str, Enum):
    APPROACHING = "approaching"
    EXCEEDED = "exceeded"
