"""
Database entities for the package catalog. Read-only for the billing pipeline.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class PackageEntity(Base):
    __tablename__ = "billing_packages"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    slug = Column(String(64), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    feature_limits = relationship(
        "FeatureLimitEntity", lazy="selectin", cascade="all, delete-orphan"
    )


class FeatureLimitEntity(Base):
    """Allowance for one feature within a package."""

    __tablename__ = "billing_feature_limits"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    package_id = Column(
        BigIntegerType,
        ForeignKey("billing_packages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    feature_key = Column(String(128), nullable=False)
    limit_type = Column(String(16), nullable=False)  # hard, soft, unlimited
    limit_value = Column(Integer, nullable=True)
    limit_unit = Column(String(64), nullable=True)
    usage_period = Column(String(32), nullable=True)
