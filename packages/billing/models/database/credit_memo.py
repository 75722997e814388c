"""
Database entity for credit memos.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, JSON
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class CreditMemoEntity(Base):
    __tablename__ = "billing_credit_memos"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    invoice_id = Column(
        BigIntegerType,
        ForeignKey("billing_invoices.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, server_default="usd")
    reason = Column(String(32), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    memo_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
