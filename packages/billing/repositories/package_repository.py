"""
Repository for the package catalog.
"""

from typing import Optional
from sqlalchemy import select

from common.repositories.base import BaseRepository
from packages.billing.models.database.package import PackageEntity
from packages.billing.models.domain.package import Package
from common.core.otel_axiom_exporter import trace_span


class PackageRepository(BaseRepository[PackageEntity, Package]):
    """Packages are global catalog rows, not owned by an organization."""

    def __init__(self, db_session=None):
        super().__init__(PackageEntity, Package, db_session)

    @trace_span
    async def get_by_slug(self, slug: str) -> Optional[Package]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PackageEntity).where(PackageEntity.slug == slug)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None
