"""
Repositories for usage events and usage aggregates.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import func, select

from common.core.otel_axiom_exporter import trace_span
from common.db.dialects import upsert_insert
from common.repositories.base import OrganizationScopedRepository
from packages.auth.models.domain.authorization_context import AuthorizationContext
from packages.billing.models.database.usage import (
    UsageAggregateEntity,
    UsageEventEntity,
)
from packages.billing.models.domain.enums import UsageResolution, UsageSource
from packages.billing.models.domain.usage import (
    UsageAggregate,
    UsageAggregateKey,
    UsageEvent,
    UsageEventCreate,
    UsageGroupTotal,
)

_AGGREGATE_KEY_COLUMNS = [
    "organization_id",
    "subscription_id",
    "feature_key",
    "resolution",
    "period_start",
    "period_end",
]


class UsageEventRepository(
    OrganizationScopedRepository[UsageEventEntity, UsageEvent]
):
    """Repository for raw usage events."""

    def __init__(self, db_session=None):
        super().__init__(UsageEventEntity, UsageEvent, db_session)

    @trace_span
    async def insert_events(
        self, ctx: AuthorizationContext, events: list[UsageEventCreate]
    ) -> int:
        """
        Bulk insert events for the context's organization.

        Events whose (organization_id, fingerprint) already exists are skipped
        silently. Returns the number of rows actually inserted.
        """
        if not events:
            return 0

        rows = []
        for event in events:
            self._authorize(ctx, event.organization_id)
            rows.append(
                {
                    "organization_id": event.organization_id,
                    "subscription_id": event.subscription_id,
                    "tenant_id": event.tenant_id,
                    "product_id": event.product_id,
                    "feature_key": event.feature_key,
                    "quantity": event.quantity,
                    "unit": event.unit,
                    "recorded_at": event.recorded_at,
                    "source": event.source.value,
                    "metadata": event.event_metadata,
                    "fingerprint": event.fingerprint,
                }
            )

        async with self._get_session() as session:
            stmt = (
                upsert_insert(session, UsageEventEntity.__table__)
                .values(rows)
                .on_conflict_do_nothing(
                    index_elements=["organization_id", "fingerprint"]
                )
            )
            result = await session.execute(stmt)
            return max(result.rowcount or 0, 0)

    @trace_span
    async def sum_by_feature(
        self,
        ctx: AuthorizationContext,
        subscription_id: int,
        period_start: datetime,
        period_end: datetime,
        feature_keys: Optional[list[str]] = None,
    ) -> list[UsageGroupTotal]:
        """Sum event quantities in [period_start, period_end) per (feature_key, unit)."""
        query = self._add_organization_filter(
            select(
                UsageEventEntity.feature_key,
                UsageEventEntity.unit,
                UsageEventEntity.quantity,
            ).where(
                UsageEventEntity.subscription_id == subscription_id,
                UsageEventEntity.recorded_at >= period_start,
                UsageEventEntity.recorded_at < period_end,
            ),
            ctx,
        )
        if feature_keys:
            query = query.where(UsageEventEntity.feature_key.in_(feature_keys))

        totals: dict[tuple[str, str], Decimal] = defaultdict(Decimal)
        async with self._get_session() as session:
            result = await session.execute(query)
            for feature_key, unit, quantity in result.all():
                totals[(feature_key, unit)] += quantity

        return [
            UsageGroupTotal(feature_key=feature_key, unit=unit, quantity=quantity)
            for (feature_key, unit), quantity in sorted(totals.items())
        ]

    @trace_span
    async def list_for_organization(
        self, ctx: AuthorizationContext, limit: int = 100, offset: int = 0
    ) -> list[UsageEvent]:
        async with self._get_session() as session:
            result = await session.execute(
                self._add_organization_filter(select(UsageEventEntity), ctx)
                .order_by(UsageEventEntity.recorded_at.desc(), UsageEventEntity.id)
                .limit(limit)
                .offset(offset)
            )
            return self._entities_to_domain(result.scalars().all())


class UsageAggregateRepository(
    OrganizationScopedRepository[UsageAggregateEntity, UsageAggregate]
):
    """Repository for usage aggregates, one row per exact window."""

    def __init__(self, db_session=None):
        super().__init__(UsageAggregateEntity, UsageAggregate, db_session)

    @trace_span
    async def upsert(
        self,
        ctx: AuthorizationContext,
        key: UsageAggregateKey,
        quantity: Decimal,
        unit: str,
        source: UsageSource,
    ) -> UsageAggregate:
        """Insert the aggregate or replace quantity, unit and source on the existing row."""
        self._authorize(ctx, key.organization_id)
        values = {
            "organization_id": key.organization_id,
            "subscription_id": key.subscription_id,
            "feature_key": key.feature_key,
            "resolution": key.resolution.value,
            "period_start": key.period_start,
            "period_end": key.period_end,
            "quantity": quantity,
            "unit": unit,
            "source": source.value,
        }

        async with self._get_session() as session:
            stmt = upsert_insert(session, UsageAggregateEntity.__table__).values(
                values
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=_AGGREGATE_KEY_COLUMNS,
                set_={
                    "quantity": stmt.excluded.quantity,
                    "unit": stmt.excluded.unit,
                    "source": stmt.excluded.source,
                    "updated_at": func.now(),
                },
            )
            await session.execute(stmt)

            result = await session.execute(
                self._key_query(ctx, key).execution_options(populate_existing=True)
            )
            return self._entity_to_domain(result.scalar_one())

    @trace_span
    async def get_by_key(
        self, ctx: AuthorizationContext, key: UsageAggregateKey
    ) -> Optional[UsageAggregate]:
        async with self._get_session() as session:
            result = await session.execute(self._key_query(ctx, key))
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    def _key_query(self, ctx: AuthorizationContext, key: UsageAggregateKey):
        return self._add_organization_filter(
            select(UsageAggregateEntity).where(
                UsageAggregateEntity.organization_id == key.organization_id,
                UsageAggregateEntity.subscription_id == key.subscription_id,
                UsageAggregateEntity.feature_key == key.feature_key,
                UsageAggregateEntity.resolution == key.resolution.value,
                UsageAggregateEntity.period_start == key.period_start,
                UsageAggregateEntity.period_end == key.period_end,
            ),
            ctx,
        )

    @trace_span
    async def sum_within(
        self,
        ctx: AuthorizationContext,
        subscription_id: int,
        feature_key: str,
        resolution: UsageResolution,
        period_start: datetime,
        period_end: datetime,
    ) -> Decimal:
        """Total quantity of aggregates whose window lies inside [period_start, period_end]."""
        query = self._add_organization_filter(
            select(UsageAggregateEntity.quantity).where(
                UsageAggregateEntity.subscription_id == subscription_id,
                UsageAggregateEntity.feature_key == feature_key,
                UsageAggregateEntity.resolution == resolution.value,
                UsageAggregateEntity.period_start >= period_start,
                UsageAggregateEntity.period_end <= period_end,
            ),
            ctx,
        )
        async with self._get_session() as session:
            result = await session.execute(query)
            return sum(result.scalars().all(), Decimal(0))

    @trace_span
    async def list_recent(
        self,
        ctx: AuthorizationContext,
        resolution: UsageResolution,
        subscription_id: Optional[int] = None,
        limit: int = 24,
    ) -> list[UsageAggregate]:
        """Most recent aggregates of one resolution, newest window first."""
        query = self._add_organization_filter(
            select(UsageAggregateEntity).where(
                UsageAggregateEntity.resolution == resolution.value
            ),
            ctx,
        )
        if subscription_id is not None:
            query = query.where(UsageAggregateEntity.subscription_id == subscription_id)

        async with self._get_session() as session:
            result = await session.execute(
                query.order_by(
                    UsageAggregateEntity.period_start.desc(),
                    UsageAggregateEntity.feature_key,
                ).limit(limit)
            )
            return self._entities_to_domain(result.scalars().all())
