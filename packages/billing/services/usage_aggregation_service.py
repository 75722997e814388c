"""
Service that rolls raw usage events up into per-window aggregates.
"""

import time
from typing import Optional

from common.core.exceptions import PolicyViolationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.auth.models.domain.authorization_context import (
    build_service_role_context,
)
from packages.billing.models.domain.usage import UsageAggregateKey
from packages.billing.models.schemas.jobs import UsageAggregateJob, UsageAggregateResult
from packages.billing.repositories.usage_repository import (
    UsageAggregateRepository,
    UsageEventRepository,
)

logger = get_logger(__name__)


class UsageAggregationService:
    """
    Aggregates usage for one subscription over one window.

    Each (feature_key, unit) group becomes a single upsert on the aggregate's
    composite key, so re-running a job for the same window replaces the rows
    it wrote before instead of adding to them.
    """

    def __init__(
        self,
        usage_repo: Optional[UsageEventRepository] = None,
        aggregate_repo: Optional[UsageAggregateRepository] = None,
    ):
        self.usage_repo = usage_repo or UsageEventRepository()
        self.aggregate_repo = aggregate_repo or UsageAggregateRepository()

    @trace_span
    async def aggregate(self, job: UsageAggregateJob) -> UsageAggregateResult:
        if job.period_end <= job.period_start:
            raise PolicyViolationError("period_end must be after period_start")

        start = time.perf_counter()
        log_extra = {
            "organization_id": job.organization_id,
            "subscription_id": job.subscription_id,
            "resolution": job.resolution.value,
            "period_start": job.period_start.isoformat(),
            "period_end": job.period_end.isoformat(),
            "backfill": job.backfill,
        }
        logger.info("Processing billing usage job", extra=log_extra)

        ctx = build_service_role_context(job.organization_id)
        totals = await self.usage_repo.sum_by_feature(
            ctx,
            job.subscription_id,
            job.period_start,
            job.period_end,
            job.feature_keys,
        )

        for total in totals:
            await self.aggregate_repo.upsert(
                ctx,
                UsageAggregateKey(
                    organization_id=job.organization_id,
                    subscription_id=job.subscription_id,
                    feature_key=total.feature_key,
                    resolution=job.resolution,
                    period_start=job.period_start,
                    period_end=job.period_end,
                ),
                quantity=total.quantity,
                unit=total.unit,
                source=job.source,
            )

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Billing usage job completed",
            extra={**log_extra, "aggregated": len(totals), "duration_ms": duration_ms},
        )
        return UsageAggregateResult(aggregated=len(totals), duration_ms=duration_ms)
