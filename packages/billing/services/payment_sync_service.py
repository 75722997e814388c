"""
Service that reconciles external payment outcomes into invoice state.
"""

import time
from typing import Optional

from common.core.exceptions import NotFoundError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.auth.models.domain.authorization_context import (
    AuthorizationContext,
    build_service_role_context,
)
from packages.billing.models.domain.enums import (
    CreditReason,
    InvoiceStatus,
    PaymentSyncEventType,
)
from packages.billing.models.domain.invoice import (
    CreditMemoCreate,
    Invoice,
    InvoiceStatusUpdate,
)
from packages.billing.models.domain.payment_sync import PaymentSyncEventCreate
from packages.billing.models.domain.types import utc_now
from packages.billing.models.schemas.jobs import PaymentSyncJob, PaymentSyncResult
from packages.billing.repositories.invoice_repository import (
    CreditMemoRepository,
    InvoiceRepository,
)
from packages.billing.repositories.payment_sync_event_repository import (
    PaymentSyncEventRepository,
)

logger = get_logger(__name__)


class PaymentSyncService:
    """
    Applies one payment event to one invoice.

    State table:
        payment_succeeded  record payment               -> paid once balance is 0
        payment_failed     status change                -> uncollectible
        payment_disputed   credit memo (service_failure)-> uncollectible
        payment_refunded   credit memo (refund), voided -> void
        sync_status        status change                -> caller status or current

    A caller supplied status overrides the resulting status of every branch
    except payment_succeeded. Events carrying an external_payment_id are
    applied at most once per invoice.
    """

    def __init__(
        self,
        invoice_repo: Optional[InvoiceRepository] = None,
        credit_repo: Optional[CreditMemoRepository] = None,
        sync_event_repo: Optional[PaymentSyncEventRepository] = None,
    ):
        self.invoice_repo = invoice_repo or InvoiceRepository()
        self.credit_repo = credit_repo or CreditMemoRepository()
        self.sync_event_repo = sync_event_repo or PaymentSyncEventRepository()

    @trace_span
    async def sync(self, job: PaymentSyncJob) -> PaymentSyncResult:
        start = time.perf_counter()
        ctx = build_service_role_context(job.organization_id)
        log_extra = {
            "organization_id": job.organization_id,
            "invoice_id": job.invoice_id,
            "event": job.event.value,
            "external_payment_id": job.external_payment_id,
        }
        logger.info(
            f"Syncing {job.event.value} for invoice {job.invoice_id}", extra=log_extra
        )

        async with transaction():
            invoice = await self.invoice_repo.get_scoped(ctx, job.invoice_id)
            if invoice is None:
                raise NotFoundError(f"Invoice {job.invoice_id} not found")

            if job.external_payment_id is not None:
                applied = await self.sync_event_repo.get_applied(
                    ctx, job.invoice_id, job.event, job.external_payment_id
                )
                if applied is not None:
                    logger.info(
                        f"Payment event already applied to invoice {job.invoice_id}",
                        extra={**log_extra, "status": invoice.status.value},
                    )
                    return PaymentSyncResult(
                        invoice_id=invoice.id,
                        status=invoice.status,
                        action=job.event.action(),
                        duration_ms=(time.perf_counter() - start) * 1000,
                        replayed=True,
                    )

            invoice = await self._apply(ctx, job, invoice)

            if job.external_payment_id is not None:
                await self.sync_event_repo.create(
                    ctx,
                    PaymentSyncEventCreate(
                        organization_id=job.organization_id,
                        invoice_id=invoice.id,
                        event=job.event,
                        external_payment_id=job.external_payment_id,
                        resulting_status=invoice.status,
                    ),
                )

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Invoice {invoice.id} is now {invoice.status.value}",
            extra={
                **log_extra,
                "status": invoice.status.value,
                "balance_cents": invoice.balance_cents,
                "duration_ms": duration_ms,
            },
        )
        return PaymentSyncResult(
            invoice_id=invoice.id,
            status=invoice.status,
            action=job.event.action(),
            duration_ms=duration_ms,
        )

    async def _apply(
        self, ctx: AuthorizationContext, job: PaymentSyncJob, invoice: Invoice
    ) -> Invoice:
        if job.event == PaymentSyncEventType.PAYMENT_SUCCEEDED:
            invoice = await self.invoice_repo.record_payment(
                ctx,
                invoice.id,
                amount_cents=(
                    job.amount_cents
                    if job.amount_cents is not None
                    else invoice.total_cents
                ),
                paid_at=job.paid_at or utc_now(),
            )
            if job.metadata is not None:
                invoice = await self._update(
                    ctx, invoice, InvoiceStatusUpdate(invoice_metadata=job.metadata)
                )
            return invoice

        if job.event == PaymentSyncEventType.PAYMENT_FAILED:
            return await self._update(
                ctx,
                invoice,
                self._status_update(job, job.status or InvoiceStatus.UNCOLLECTIBLE),
            )

        if job.event == PaymentSyncEventType.PAYMENT_DISPUTED:
            await self._issue_credit(ctx, job, invoice, CreditReason.SERVICE_FAILURE)
            return await self._update(
                ctx,
                invoice,
                self._status_update(job, job.status or InvoiceStatus.UNCOLLECTIBLE),
            )

        if job.event == PaymentSyncEventType.PAYMENT_REFUNDED:
            await self._issue_credit(ctx, job, invoice, CreditReason.REFUND)
            update = self._status_update(job, job.status or InvoiceStatus.VOID)
            update.voided_at = job.paid_at or utc_now()
            return await self._update(ctx, invoice, update)

        return await self._update(
            ctx, invoice, self._status_update(job, job.status or invoice.status)
        )

    def _status_update(
        self, job: PaymentSyncJob, status: InvoiceStatus
    ) -> InvoiceStatusUpdate:
        update = InvoiceStatusUpdate(status=status)
        if job.metadata is not None:
            update.invoice_metadata = job.metadata
        return update

    async def _update(
        self, ctx: AuthorizationContext, invoice: Invoice, update: InvoiceStatusUpdate
    ) -> Invoice:
        updated = await self.invoice_repo.update(ctx, invoice.id, update)
        if updated is None:
            raise NotFoundError(f"Invoice {invoice.id} not found")
        return updated

    async def _issue_credit(
        self,
        ctx: AuthorizationContext,
        job: PaymentSyncJob,
        invoice: Invoice,
        default_reason: CreditReason,
    ) -> None:
        credit = job.credit
        if credit is not None:
            amount = credit.amount_cents
        elif job.amount_cents is not None:
            amount = job.amount_cents
        else:
            amount = invoice.balance_cents

        memo = await self.credit_repo.create(
            ctx,
            CreditMemoCreate(
                organization_id=invoice.organization_id,
                invoice_id=invoice.id,
                amount_cents=amount,
                currency=invoice.currency,
                reason=(credit.reason if credit and credit.reason else default_reason),
                memo_metadata=(
                    credit.metadata
                    if credit and credit.metadata is not None
                    else job.metadata
                ),
            ),
        )
        logger.info(
            f"Issued credit memo {memo.id} for invoice {invoice.id}",
            extra={
                "invoice_id": invoice.id,
                "credit_memo_id": memo.id,
                "amount_cents": amount,
                "reason": memo.reason.value,
            },
        )
