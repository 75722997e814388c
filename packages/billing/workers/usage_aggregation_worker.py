from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.providers.messaging.constants import QueueName
from common.workers.base_worker import BaseWorker
from packages.billing.models.schemas.jobs import UsageAggregateJob
from packages.billing.services.usage_aggregation_service import (
    UsageAggregationService,
)

logger = get_logger(__name__)


class UsageAggregationWorker(BaseWorker[UsageAggregateJob]):
    """Consumes billing_usage jobs and rolls events up into aggregates."""

    def __init__(self, service: Optional[UsageAggregationService] = None):
        super().__init__(
            QueueName.BILLING_USAGE,
            None,
            UsageAggregateJob,
            max_concurrent_messages=settings.billing_worker_prefetch_count,
        )
        self.service = service or UsageAggregationService()

    @trace_span
    async def process_message(self, message: UsageAggregateJob):
        result = await self.service.aggregate(message)
        logger.info(
            f"Aggregated {result.aggregated} features for subscription {message.subscription_id}",
            extra={
                "organization_id": message.organization_id,
                "subscription_id": message.subscription_id,
                "aggregated": result.aggregated,
                "duration_ms": result.duration_ms,
            },
        )
