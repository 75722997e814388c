"""
Domain models for subscriptions.
"""

from typing import Optional
from pydantic import BaseModel

from packages.billing.models.domain.enums import BillingInterval, SubscriptionStatus
from packages.billing.models.domain.types import UtcDatetime


class Subscription(BaseModel):
    """
    Organization subscription domain model.

    amount_cents is the recurring charge per billing_interval in currency's
    minor units.
    """

    id: int
    organization_id: str
    package_id: int

    status: SubscriptionStatus
    currency: str
    amount_cents: int
    billing_interval: BillingInterval

    current_period_start: UtcDatetime
    current_period_end: UtcDatetime
    cancel_at_period_end: bool = False

    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True

    def is_active(self) -> bool:
        return self.status.is_active()
