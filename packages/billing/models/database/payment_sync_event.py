"""
Database entity recording applied payment sync events.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class PaymentSyncEventEntity(Base):
    """
    One row per external payment event applied to an invoice.

    Written in the same transaction as the invoice mutation, so a replay of
    the same (invoice, event, external_payment_id) is detected and skipped.
    """

    __tablename__ = "billing_payment_sync_events"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    invoice_id = Column(
        BigIntegerType,
        ForeignKey("billing_invoices.id", ondelete="CASCADE"),
        nullable=False,
    )
    event = Column(String(32), nullable=False)
    external_payment_id = Column(String(255), nullable=False)
    resulting_status = Column(String(32), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "invoice_id",
            "event",
            "external_payment_id",
            name="uq_billing_payment_sync_event",
        ),
    )
