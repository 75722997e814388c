"""
Database entities for invoices and their lines.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Integer, JSON
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, DecimalType


class InvoiceEntity(Base):
    """
    Invoice header.

    total_cents == subtotal_cents + tax_cents. balance_cents starts at
    total_cents and only ever decreases, never below zero.
    """

    __tablename__ = "billing_invoices"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("billing_subscriptions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    number = Column(String(64), nullable=False, unique=True)
    status = Column(String(32), nullable=False, index=True)
    currency = Column(String(3), nullable=False, server_default="usd")

    subtotal_cents = Column(Integer, nullable=False)
    tax_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False)
    balance_cents = Column(Integer, nullable=False)

    issued_at = Column(DateTime(timezone=True), nullable=False)
    due_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    voided_at = Column(DateTime(timezone=True), nullable=True)

    external_id = Column(String(255), nullable=True)
    invoice_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_billing_invoice_org_status", "organization_id", "status"),
    )


class InvoiceLineEntity(Base):
    """Invoice line. Append-only once written."""

    __tablename__ = "billing_invoice_lines"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    invoice_id = Column(
        BigIntegerType,
        ForeignKey("billing_invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_type = Column(String(32), nullable=False)
    description = Column(String(512), nullable=True)
    feature_key = Column(String(128), nullable=True)
    quantity = Column(DecimalType, nullable=False)
    unit_amount_cents = Column(Integer, nullable=False)
    amount_cents = Column(Integer, nullable=False)
    usage_period_start = Column(DateTime(timezone=True), nullable=True)
    usage_period_end = Column(DateTime(timezone=True), nullable=True)
    line_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
