"""
Domain models for invoices, invoice lines and credit memos.
"""

from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel

from packages.billing.models.domain.enums import (
    CreditReason,
    InvoiceLineType,
    InvoiceStatus,
)
from packages.billing.models.domain.types import UtcDatetime


class Invoice(BaseModel):
    """
    Invoice domain model.

    Invariants: total_cents == subtotal_cents + tax_cents and
    balance_cents <= total_cents. The balance starts equal to the total.
    """

    id: int
    organization_id: str
    subscription_id: Optional[int] = None
    number: str
    status: InvoiceStatus
    currency: str

    subtotal_cents: int
    tax_cents: int
    total_cents: int
    balance_cents: int

    issued_at: UtcDatetime
    due_at: Optional[UtcDatetime] = None
    paid_at: Optional[UtcDatetime] = None
    voided_at: Optional[UtcDatetime] = None

    external_id: Optional[str] = None
    invoice_metadata: Optional[dict[str, Any]] = None

    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True

    def is_outstanding(self) -> bool:
        return self.status in InvoiceStatus.outstanding_statuses()


class InvoiceCreate(BaseModel):
    organization_id: str
    subscription_id: Optional[int] = None
    number: str
    status: InvoiceStatus
    currency: str
    subtotal_cents: int
    tax_cents: int = 0
    total_cents: int
    balance_cents: int
    issued_at: UtcDatetime
    due_at: Optional[UtcDatetime] = None
    external_id: Optional[str] = None
    invoice_metadata: Optional[dict[str, Any]] = None


class InvoiceStatusUpdate(BaseModel):
    """Partial update applied by the payment sync engine. Unset fields are left alone."""

    status: Optional[InvoiceStatus] = None
    balance_cents: Optional[int] = None
    paid_at: Optional[UtcDatetime] = None
    voided_at: Optional[UtcDatetime] = None
    invoice_metadata: Optional[dict[str, Any]] = None


class InvoiceLine(BaseModel):
    id: int
    invoice_id: int
    line_type: InvoiceLineType
    description: Optional[str] = None
    feature_key: Optional[str] = None
    quantity: Decimal
    unit_amount_cents: int
    amount_cents: int
    usage_period_start: Optional[UtcDatetime] = None
    usage_period_end: Optional[UtcDatetime] = None
    line_metadata: Optional[dict[str, Any]] = None

    class Config:
        from_attributes = True


class InvoiceLineCreate(BaseModel):
    """Line prepared by the invoice builder before the invoice exists."""

    line_type: InvoiceLineType
    description: Optional[str] = None
    feature_key: Optional[str] = None
    quantity: Decimal = Decimal(1)
    unit_amount_cents: int
    amount_cents: int
    usage_period_start: Optional[UtcDatetime] = None
    usage_period_end: Optional[UtcDatetime] = None
    line_metadata: Optional[dict[str, Any]] = None


class CreditMemo(BaseModel):
    id: int
    organization_id: str
    invoice_id: Optional[int] = None
    amount_cents: int
    currency: str
    reason: CreditReason
    expires_at: Optional[UtcDatetime] = None
    memo_metadata: Optional[dict[str, Any]] = None
    created_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True


class CreditMemoCreate(BaseModel):
    organization_id: str
    invoice_id: Optional[int] = None
    amount_cents: int
    currency: str
    reason: CreditReason
    expires_at: Optional[UtcDatetime] = None
    memo_metadata: Optional[dict[str, Any]] = None
