"""
Dispatches billing jobs to their worker queues.
"""

import calendar
import hashlib
import json
from datetime import datetime, timedelta
from typing import Any, Optional

from common.core.exceptions import JobDispatchError, PolicyViolationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.providers.messaging.constants import QueueName
from common.providers.messaging.factory import get_message_queue
from common.providers.messaging.interface import MessageQueueInterface
from packages.billing.models.domain.enums import UsageResolution, UsageSource
from packages.billing.models.schemas.jobs import (
    InvoiceJob,
    JobEnqueuedResponse,
    JobSchema,
    PaymentSyncJob,
    UsageAggregateJob,
    UsageBackfillRequest,
    UsageBackfillResponse,
)

logger = get_logger(__name__)

BACKFILL_SCRIPT = "usage-backfill"


def derive_idempotency_key(prefix: str, parts: list[Any]) -> Optional[str]:
    """
    Deterministic job key: ``<prefix>:<sha1 of the non-empty parts>``.

    Scalars are joined as strings and containers as compact JSON. Returns
    None when every part is empty.
    """
    segments = []
    for part in parts:
        if part is None:
            continue
        if isinstance(part, (str, int, float, bool)):
            segment = str(part)
        else:
            segment = json.dumps(part, separators=(",", ":"), default=str)
        if segment:
            segments.append(segment)

    if not segments:
        return None
    digest = hashlib.sha1("|".join(segments).encode()).hexdigest()
    return f"{prefix}:{digest}"


def _add_month(value: datetime) -> datetime:
    year, month = divmod(value.month, 12)
    year += value.year
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _next_window_start(value: datetime, resolution: UsageResolution) -> datetime:
    if resolution == UsageResolution.DAILY:
        return value + timedelta(days=1)
    if resolution == UsageResolution.WEEKLY:
        return value + timedelta(days=7)
    if resolution == UsageResolution.MONTHLY:
        return _add_month(value)
    raise PolicyViolationError(f"Unsupported backfill resolution: {resolution.value}")


def split_backfill_windows(
    start: datetime, end: datetime, resolution: UsageResolution
) -> list[tuple[datetime, datetime]]:
    """
    Split ``[start, end)`` into consecutive windows of one resolution step.

    The last window is clipped to ``end``. Monthly steps keep the day of
    month, falling back to the last day of shorter months.

    Raises:
        PolicyViolationError: ``end`` is not after ``start`` or the
            resolution is hourly
    """
    if end <= start:
        raise PolicyViolationError("period_end must be after period_start")

    windows = []
    cursor = start
    while cursor < end:
        following = _next_window_start(cursor, resolution)
        windows.append((cursor, min(following, end)))
        cursor = following
    return windows


class BillingJobService:
    """Validated billing jobs go out on the queue keyed by an idempotency key."""

    def __init__(self, message_queue: Optional[MessageQueueInterface] = None):
        self.message_queue = message_queue or get_message_queue()

    @trace_span
    async def enqueue_usage_aggregation(
        self, job: UsageAggregateJob, idempotency_key: Optional[str] = None
    ) -> JobEnqueuedResponse:
        payload = self._payload(job)
        key = idempotency_key or derive_idempotency_key(
            "billing-usage",
            [
                payload["organizationId"],
                payload["subscriptionId"],
                payload["periodStart"],
                payload["periodEnd"],
                payload["resolution"],
                payload["featureKeys"],
            ],
        )
        return await self._publish(QueueName.BILLING_USAGE, payload, key)

    @trace_span
    async def enqueue_backfill(
        self, request: UsageBackfillRequest
    ) -> UsageBackfillResponse:
        """
        Enqueue one backfill aggregation job per window of the request range.

        Each job is keyed by organization, subscription, resolution and
        window start so a repeated backfill replaces rather than duplicates.
        """
        windows = split_backfill_windows(
            request.period_start, request.period_end, request.resolution
        )
        logger.info(
            f"Enqueuing usage backfill for organization {request.organization_id}",
            extra={
                "organization_id": request.organization_id,
                "subscription_id": request.subscription_id,
                "resolution": request.resolution.value,
                "feature_keys": request.feature_keys,
                "periods": len(windows),
            },
        )

        keys = []
        for period_start, period_end in windows:
            job = UsageAggregateJob(
                organization_id=request.organization_id,
                subscription_id=request.subscription_id,
                period_start=period_start,
                period_end=period_end,
                resolution=request.resolution,
                source=UsageSource.WORKER,
                feature_keys=request.feature_keys,
                backfill=True,
                context={
                    "initiatedBy": request.initiated_by,
                    "script": BACKFILL_SCRIPT,
                },
            )
            key = (
                f"billing-usage:{request.organization_id}:{request.subscription_id}"
                f":{request.resolution.value}:{period_start.isoformat()}"
            )
            response = await self.enqueue_usage_aggregation(job, key)
            keys.append(response.idempotency_key)

        logger.info(
            f"Enqueued {len(keys)} usage backfill jobs",
            extra={"organization_id": request.organization_id, "enqueued": len(keys)},
        )
        return UsageBackfillResponse(
            queue=QueueName.BILLING_USAGE.value,
            enqueued=len(keys),
            idempotency_keys=keys,
        )

    @trace_span
    async def enqueue_invoice(
        self, job: InvoiceJob, idempotency_key: Optional[str] = None
    ) -> JobEnqueuedResponse:
        payload = self._payload(job)
        key = idempotency_key or derive_idempotency_key(
            "billing-invoice",
            [
                payload["organizationId"],
                payload["subscriptionId"],
                payload["periodStart"],
                payload["periodEnd"],
                payload["invoiceNumber"],
            ],
        )
        return await self._publish(QueueName.BILLING_INVOICE, payload, key)

    @trace_span
    async def enqueue_payment_sync(
        self, job: PaymentSyncJob, idempotency_key: Optional[str] = None
    ) -> JobEnqueuedResponse:
        payload = self._payload(job)
        metadata = payload.get("metadata") or {}
        key = idempotency_key or derive_idempotency_key(
            "billing-payment-sync",
            [
                payload["organizationId"],
                payload["invoiceId"],
                payload["event"],
                payload["externalPaymentId"],
                metadata.get("providerEventId"),
            ],
        )
        return await self._publish(QueueName.BILLING_PAYMENT_SYNC, payload, key)

    def _payload(self, job: JobSchema) -> dict[str, Any]:
        return job.model_dump(mode="json", by_alias=True)

    async def _publish(
        self, queue: QueueName, payload: dict[str, Any], idempotency_key: str
    ) -> JobEnqueuedResponse:
        await self.message_queue.declare_queue(queue)

        logger.info(
            f"Publishing billing job to {queue.value}",
            extra={"queue": queue.value, "idempotency_key": idempotency_key},
        )
        success = await self.message_queue.publish(
            queue.value, payload, message_id=idempotency_key
        )
        if not success:
            logger.error(
                f"Failed to publish billing job to {queue.value}",
                extra={"queue": queue.value, "idempotency_key": idempotency_key},
            )
            raise JobDispatchError(f"Could not enqueue job on {queue.value}")

        return JobEnqueuedResponse(queue=queue.value, idempotency_key=idempotency_key)
