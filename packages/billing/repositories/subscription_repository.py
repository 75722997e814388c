"""
Repository for subscription management.
"""

from typing import Optional
from sqlalchemy import select

from common.repositories.base import OrganizationScopedRepository
from packages.auth.models.domain.authorization_context import AuthorizationContext
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.domain.subscription import Subscription
from packages.billing.models.domain.enums import SubscriptionStatus
from common.core.otel_axiom_exporter import trace_span


class SubscriptionRepository(
    OrganizationScopedRepository[SubscriptionEntity, Subscription]
):
    """Repository for organization subscriptions."""

    def __init__(self, db_session=None):
        super().__init__(SubscriptionEntity, Subscription, db_session)

    @trace_span
    async def get_active(self, ctx: AuthorizationContext) -> Optional[Subscription]:
        """Most recently created trialing, active or past_due subscription."""
        active = [status.value for status in SubscriptionStatus.active_statuses()]
        async with self._get_session() as session:
            result = await session.execute(
                self._add_organization_filter(
                    select(SubscriptionEntity).where(
                        SubscriptionEntity.status.in_(active)
                    ),
                    ctx,
                )
                .order_by(
                    SubscriptionEntity.created_at.desc(),
                    SubscriptionEntity.id.desc(),
                )
                .limit(1)
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def list_for_organization(
        self, ctx: AuthorizationContext
    ) -> list[Subscription]:
        async with self._get_session() as session:
            result = await session.execute(
                self._add_organization_filter(
                    select(SubscriptionEntity), ctx
                ).order_by(SubscriptionEntity.created_at.desc())
            )
            return self._entities_to_domain(result.scalars().all())
