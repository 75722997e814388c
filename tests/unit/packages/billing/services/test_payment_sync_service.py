"""
Unit tests for PaymentSyncService.

Each payment event is applied to a real invoice row and the resulting
invoice, credit memos and sync records are checked.
"""

import pytest
from datetime import timedelta

from common.core.exceptions import NotFoundError
from packages.auth.models.domain.authorization_context import (
    build_service_role_context,
)
from packages.billing.models.domain.enums import (
    CreditReason,
    InvoiceStatus,
    PaymentSyncAction,
    PaymentSyncEventType,
)
from packages.billing.models.schemas.jobs import PaymentSyncJob
from packages.billing.repositories.invoice_repository import (
    CreditMemoRepository,
    InvoiceRepository,
)
from packages.billing.repositories.payment_sync_event_repository import (
    PaymentSyncEventRepository,
)
from packages.billing.services.payment_sync_service import PaymentSyncService
from tests.conftest import ORG_ID, OTHER_ORG_ID, PERIOD_END

PAID_AT = PERIOD_END + timedelta(days=2)


def sync_job(invoice_id, event, **overrides) -> PaymentSyncJob:
    data = {"organizationId": ORG_ID, "invoiceId": invoice_id, "event": event}
    data.update(overrides)
    return PaymentSyncJob.model_validate(data)


async def reload(invoice_id):
    return await InvoiceRepository().get_scoped(
        build_service_role_context(ORG_ID), invoice_id
    )


async def credits(invoice_id):
    return await CreditMemoRepository().list_for_invoice(
        build_service_role_context(ORG_ID), invoice_id
    )


@pytest.mark.asyncio
class TestPaymentSyncService:
    """Tests for PaymentSyncService."""

    async def test_payment_succeeded_pays_invoice(self, add_invoice):
        """Test that a full payment settles the invoice."""
        invoice = await add_invoice("INV-1", 1000)

        result = await PaymentSyncService().sync(
            sync_job(
                invoice.id,
                "payment_succeeded",
                paidAt=PAID_AT.isoformat(),
                metadata={"charge": "ch_1"},
            )
        )

        assert result.status == InvoiceStatus.PAID
        assert result.action == PaymentSyncAction.PAYMENT_RECORDED
        assert result.replayed is False
        stored = await reload(invoice.id)
        assert stored.balance_cents == 0
        assert stored.paid_at == PAID_AT
        assert stored.invoice_metadata == {"charge": "ch_1"}

    async def test_partial_payment_keeps_invoice_open(self, add_invoice):
        """Test that a partial payment only reduces the balance."""
        invoice = await add_invoice("INV-1", 1000)

        result = await PaymentSyncService().sync(
            sync_job(invoice.id, "PAYMENT_SUCCEEDED", amountCents=250)
        )

        assert result.status == InvoiceStatus.OPEN
        stored = await reload(invoice.id)
        assert stored.balance_cents == 750

    async def test_payment_failed_marks_uncollectible(self, add_invoice):
        """Test the default status of a failed payment."""
        invoice = await add_invoice("INV-1", 1000)

        result = await PaymentSyncService().sync(
            sync_job(invoice.id, "payment_failed")
        )

        assert result.status == InvoiceStatus.UNCOLLECTIBLE
        assert result.action == PaymentSyncAction.STATUS_UPDATED
        stored = await reload(invoice.id)
        assert stored.balance_cents == 1000

    async def test_payment_failed_with_status_override(self, add_invoice):
        """Test that a caller supplied status wins."""
        invoice = await add_invoice("INV-1", 1000)

        result = await PaymentSyncService().sync(
            sync_job(invoice.id, "payment_failed", status="OPEN")
        )

        assert result.status == InvoiceStatus.OPEN

    async def test_dispute_issues_service_failure_credit(self, add_invoice):
        """Test that a dispute credits the balance and marks uncollectible."""
        invoice = await add_invoice("INV-1", 1000, balance_cents=750)

        result = await PaymentSyncService().sync(
            sync_job(invoice.id, "payment_disputed", metadata={"dispute": "dp_1"})
        )

        assert result.status == InvoiceStatus.UNCOLLECTIBLE
        assert result.action == PaymentSyncAction.CREDIT_ISSUED
        memos = await credits(invoice.id)
        assert len(memos) == 1
        assert memos[0].amount_cents == 750
        assert memos[0].reason == CreditReason.SERVICE_FAILURE
        assert memos[0].currency == "usd"
        assert memos[0].memo_metadata == {"dispute": "dp_1"}

    async def test_refund_with_explicit_credit_voids_invoice(self, add_invoice):
        """Test that a refund issues the requested credit and voids the invoice."""
        invoice = await add_invoice(
            "INV-1", 1000, status=InvoiceStatus.PAID, balance_cents=0
        )

        result = await PaymentSyncService().sync(
            sync_job(
                invoice.id,
                "payment_refunded",
                paidAt=PAID_AT.isoformat(),
                credit={
                    "amountCents": 200,
                    "reason": "ADJUSTMENT",
                    "metadata": {"ticket": 42},
                },
            )
        )

        assert result.status == InvoiceStatus.VOID
        stored = await reload(invoice.id)
        assert stored.voided_at == PAID_AT
        memos = await credits(invoice.id)
        assert memos[0].amount_cents == 200
        assert memos[0].reason == CreditReason.ADJUSTMENT
        assert memos[0].memo_metadata == {"ticket": 42}

    async def test_refund_credit_defaults_to_amount(self, add_invoice):
        """Test that amount_cents is used when no credit is given."""
        invoice = await add_invoice("INV-1", 1000)

        await PaymentSyncService().sync(
            sync_job(invoice.id, "payment_refunded", amountCents=600)
        )

        memos = await credits(invoice.id)
        assert memos[0].amount_cents == 600
        assert memos[0].reason == CreditReason.REFUND
        stored = await reload(invoice.id)
        assert stored.voided_at is not None

    async def test_sync_status(self, add_invoice):
        """Test that sync_status applies the caller status or keeps the current one."""
        invoice = await add_invoice("INV-1", 1000, status=InvoiceStatus.DRAFT)
        service = PaymentSyncService()

        unchanged = await service.sync(sync_job(invoice.id, "sync_status"))
        opened = await service.sync(sync_job(invoice.id, "sync_status", status="open"))

        assert unchanged.status == InvoiceStatus.DRAFT
        assert opened.status == InvoiceStatus.OPEN
        assert opened.action == PaymentSyncAction.STATUS_UPDATED

    async def test_replay_is_a_noop(self, add_invoice):
        """Test that the same external payment is applied only once."""
        invoice = await add_invoice("INV-1", 1000)
        service = PaymentSyncService()
        job = sync_job(
            invoice.id, "payment_succeeded", amountCents=400, externalPaymentId="pi_1"
        )

        first = await service.sync(job)
        second = await service.sync(job)

        assert first.replayed is False
        assert second.replayed is True
        assert second.status == InvoiceStatus.OPEN
        assert second.action == PaymentSyncAction.PAYMENT_RECORDED
        stored = await reload(invoice.id)
        assert stored.balance_cents == 600
        applied = await PaymentSyncEventRepository().get_applied(
            build_service_role_context(ORG_ID),
            invoice.id,
            PaymentSyncEventType.PAYMENT_SUCCEEDED,
            "pi_1",
        )
        assert applied.resulting_status == InvoiceStatus.OPEN

    async def test_different_external_payments_both_apply(self, add_invoice):
        """Test that distinct external payment ids are independent."""
        invoice = await add_invoice("INV-1", 1000)
        service = PaymentSyncService()

        await service.sync(
            sync_job(
                invoice.id,
                "payment_succeeded",
                amountCents=400,
                externalPaymentId="pi_1",
            )
        )
        result = await service.sync(
            sync_job(
                invoice.id,
                "payment_succeeded",
                amountCents=600,
                externalPaymentId="pi_2",
            )
        )

        assert result.status == InvoiceStatus.PAID

    async def test_missing_invoice(self):
        """Test that an unknown invoice fails."""
        with pytest.raises(NotFoundError):
            await PaymentSyncService().sync(sync_job(12345, "payment_succeeded"))

    async def test_invoice_of_other_organization_is_not_found(self, add_invoice):
        """Test organization scoping of payment sync."""
        invoice = await add_invoice("INV-1", 1000, organization_id=OTHER_ORG_ID)

        with pytest.raises(NotFoundError):
            await PaymentSyncService().sync(sync_job(invoice.id, "payment_succeeded"))
