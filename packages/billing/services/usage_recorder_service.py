"""
Service for recording metered usage events.
"""

from collections import defaultdict
from typing import Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.auth.models.domain.authorization_context import (
    build_service_role_context,
)
from packages.billing.models.domain.types import utc_now
from packages.billing.models.domain.usage import UsageEventCreate
from packages.billing.models.schemas.jobs import (
    UsageEventBatch,
    UsageEventInput,
    UsageRecordResult,
)
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.usage_repository import UsageEventRepository

logger = get_logger(__name__)


class UsageRecorderService:
    """
    Persists batches of usage events.

    Events are grouped per organization and each group is written under that
    organization's service-role context. A group that fails is logged and
    dropped so the rest of the batch still lands.
    """

    def __init__(
        self,
        usage_repo: Optional[UsageEventRepository] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
    ):
        self.usage_repo = usage_repo or UsageEventRepository()
        self.subscription_repo = subscription_repo or SubscriptionRepository()

    @trace_span
    async def record_events(self, batch: UsageEventBatch) -> UsageRecordResult:
        attempted = len(batch.events)
        by_organization: dict[str, list[UsageEventInput]] = defaultdict(list)
        for event in batch.events:
            by_organization[event.organization_id].append(event)

        accepted = 0
        for organization_id, events in by_organization.items():
            accepted += await self._record_group(organization_id, events)

        if accepted < attempted:
            logger.warning(
                "billing_usage_event_drop",
                extra={
                    "attempted": attempted,
                    "accepted": accepted,
                    "dropped": attempted - accepted,
                },
            )

        logger.info(
            f"Recorded {accepted} of {attempted} usage events",
            extra={"attempted": attempted, "accepted": accepted},
        )
        return UsageRecordResult(accepted=accepted)

    async def _record_group(
        self, organization_id: str, events: list[UsageEventInput]
    ) -> int:
        ctx = build_service_role_context(organization_id)

        subscription_id = None
        if any(event.subscription_id is None for event in events):
            try:
                subscription = await self.subscription_repo.get_active(ctx)
                subscription_id = subscription.id if subscription else None
            except Exception as e:
                logger.error(
                    f"Failed to resolve subscription for organization {organization_id}: {e}",
                    extra={"organization_id": organization_id},
                )

        now = utc_now()
        rows = [
            UsageEventCreate(
                organization_id=organization_id,
                subscription_id=(
                    event.subscription_id
                    if event.subscription_id is not None
                    else subscription_id
                ),
                tenant_id=event.tenant_id,
                product_id=event.product_id,
                feature_key=event.feature_key,
                quantity=event.quantity,
                unit=event.unit,
                recorded_at=event.recorded_at or now,
                source=event.source,
                event_metadata=event.metadata,
                fingerprint=event.fingerprint,
            )
            for event in events
        ]

        try:
            return await self.usage_repo.insert_events(ctx, rows)
        except Exception as e:
            logger.error(
                f"Failed to record {len(rows)} usage events for organization {organization_id}: {e}",
                exc_info=True,
                extra={"organization_id": organization_id, "event_count": len(rows)},
            )
            return 0
