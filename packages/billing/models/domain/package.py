"""
Domain models for packages and their feature limits.
"""

from typing import Optional
from pydantic import BaseModel

from packages.billing.models.domain.enums import LimitType, UsagePeriod


class FeatureLimit(BaseModel):
    id: int
    package_id: int
    feature_key: str
    limit_type: LimitType
    limit_value: Optional[int] = None
    limit_unit: Optional[str] = None
    usage_period: Optional[UsagePeriod] = None

    class Config:
        from_attributes = True


class Package(BaseModel):
    id: int
    slug: str
    name: str
    active: bool = True
    feature_limits: list[FeatureLimit] = []

    class Config:
        from_attributes = True

    def limits_by_feature(self) -> dict[str, FeatureLimit]:
        return {limit.feature_key: limit for limit in self.feature_limits}
