from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.providers.messaging.constants import QueueName
from common.workers.base_worker import BaseWorker
from packages.billing.models.schemas.jobs import InvoiceJob
from packages.billing.services.invoice_builder_service import InvoiceBuilderService

logger = get_logger(__name__)


class InvoiceWorker(BaseWorker[InvoiceJob]):
    """Consumes billing_invoice jobs and builds invoices."""

    def __init__(self, service: Optional[InvoiceBuilderService] = None):
        super().__init__(
            QueueName.BILLING_INVOICE,
            None,
            InvoiceJob,
            max_concurrent_messages=settings.billing_worker_prefetch_count,
        )
        self.service = service or InvoiceBuilderService()

    @trace_span
    async def process_message(self, message: InvoiceJob):
        result = await self.service.build_invoice(message)
        logger.info(
            f"Built invoice {result.invoice_id} for organization {message.organization_id}",
            extra={
                "organization_id": message.organization_id,
                "invoice_id": result.invoice_id,
                "total_cents": result.total_cents,
                "line_count": result.line_count,
            },
        )
