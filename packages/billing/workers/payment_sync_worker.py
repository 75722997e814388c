from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.providers.locking.factory import get_lock_provider
from common.providers.locking.interface import DistributedLockInterface
from common.providers.messaging.constants import QueueName
from common.workers.base_worker import BaseWorker
from packages.billing.lock_keys import invoice_payment_lock_key
from packages.billing.models.schemas.jobs import PaymentSyncJob
from packages.billing.services.payment_sync_service import PaymentSyncService

logger = get_logger(__name__)


class PaymentSyncWorker(BaseWorker[PaymentSyncJob]):
    """
    Consumes billing_payment_sync jobs.

    Jobs for the same invoice are serialized through a distributed lock so
    concurrent deliveries cannot lose balance updates. Failing to get the
    lock raises, which sends the message back to the queue.
    """

    def __init__(
        self,
        service: Optional[PaymentSyncService] = None,
        lock_provider: Optional[DistributedLockInterface] = None,
    ):
        super().__init__(
            QueueName.BILLING_PAYMENT_SYNC,
            None,
            PaymentSyncJob,
            max_concurrent_messages=settings.billing_worker_prefetch_count,
        )
        self.service = service or PaymentSyncService()
        self.lock_provider = lock_provider or get_lock_provider()

    @trace_span
    async def process_message(self, message: PaymentSyncJob):
        async with self.lock_provider.hold(
            invoice_payment_lock_key(message.invoice_id),
            lock_ttl_seconds=settings.billing_payment_lock_ttl_seconds,
            acquire_timeout_seconds=settings.billing_payment_lock_acquire_timeout_seconds,
        ):
            result = await self.service.sync(message)

        logger.info(
            f"Payment sync {result.action.value} on invoice {result.invoice_id}",
            extra={
                "organization_id": message.organization_id,
                "invoice_id": result.invoice_id,
                "status": result.status.value,
                "replayed": result.replayed,
            },
        )
