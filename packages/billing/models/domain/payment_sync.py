"""
Domain models for applied payment sync events.
"""

from typing import Optional
from pydantic import BaseModel

from packages.billing.models.domain.enums import InvoiceStatus, PaymentSyncEventType
from packages.billing.models.domain.types import UtcDatetime


class PaymentSyncEvent(BaseModel):
    id: int
    organization_id: str
    invoice_id: int
    event: PaymentSyncEventType
    external_payment_id: str
    resulting_status: InvoiceStatus
    created_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True


class PaymentSyncEventCreate(BaseModel):
    organization_id: str
    invoice_id: int
    event: PaymentSyncEventType
    external_payment_id: str
    resulting_status: InvoiceStatus
