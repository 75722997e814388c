"""
Unit tests for InvoiceRepository, InvoiceLineRepository and CreditMemoRepository.
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from common.core.exceptions import AuthorizationError, NotFoundError
from packages.auth.models.domain.authorization_context import (
    build_service_role_context,
)
from packages.billing.models.domain.enums import (
    CreditReason,
    InvoiceLineType,
    InvoiceStatus,
)
from packages.billing.models.domain.invoice import (
    CreditMemoCreate,
    InvoiceLineCreate,
    InvoiceStatusUpdate,
)
from packages.billing.repositories.invoice_repository import (
    CreditMemoRepository,
    InvoiceLineRepository,
    InvoiceRepository,
)
from tests.conftest import OTHER_ORG_ID, PERIOD_END


@pytest.mark.asyncio
class TestInvoiceRepository:
    """Tests for InvoiceRepository."""

    async def test_partial_payment_reduces_balance(
        self, test_db, org_ctx, add_invoice
    ):
        """Test that a partial payment leaves the invoice open."""
        invoice = await add_invoice("INV-1", 1000)
        repo = InvoiceRepository(test_db)

        updated = await repo.record_payment(org_ctx, invoice.id, 400, PERIOD_END)

        assert updated.balance_cents == 600
        assert updated.status == InvoiceStatus.OPEN
        assert updated.paid_at == PERIOD_END

    async def test_full_payment_marks_invoice_paid(
        self, test_db, org_ctx, add_invoice
    ):
        """Test that paying the balance marks the invoice paid."""
        invoice = await add_invoice("INV-1", 1000)
        repo = InvoiceRepository(test_db)

        await repo.record_payment(org_ctx, invoice.id, 400, PERIOD_END)
        updated = await repo.record_payment(org_ctx, invoice.id, 600, PERIOD_END)

        assert updated.balance_cents == 0
        assert updated.status == InvoiceStatus.PAID

    async def test_overpayment_clamps_balance_at_zero(
        self, test_db, org_ctx, add_invoice
    ):
        """Test that the balance never goes negative."""
        invoice = await add_invoice("INV-1", 1000)
        repo = InvoiceRepository(test_db)

        updated = await repo.record_payment(org_ctx, invoice.id, 5000, PERIOD_END)

        assert updated.balance_cents == 0
        assert updated.total_cents == 1000
        assert updated.status == InvoiceStatus.PAID

    async def test_record_payment_for_other_organization_is_not_found(
        self, test_db, add_invoice
    ):
        """Test that another organization's invoice cannot be paid."""
        invoice = await add_invoice("INV-1", 1000)
        repo = InvoiceRepository(test_db)

        with pytest.raises(NotFoundError):
            await repo.record_payment(
                build_service_role_context(OTHER_ORG_ID), invoice.id, 100, PERIOD_END
            )

    async def test_update_status_and_metadata(self, test_db, org_ctx, add_invoice):
        """Test the partial status update used by payment sync."""
        invoice = await add_invoice("INV-1", 1000)
        repo = InvoiceRepository(test_db)

        updated = await repo.update(
            org_ctx,
            invoice.id,
            InvoiceStatusUpdate(
                status=InvoiceStatus.UNCOLLECTIBLE,
                invoice_metadata={"attempt": 3},
            ),
        )

        assert updated.status == InvoiceStatus.UNCOLLECTIBLE
        assert updated.invoice_metadata == {"attempt": 3}
        assert updated.balance_cents == 1000

    async def test_sum_outstanding_balance(self, test_db, org_ctx, add_invoice):
        """Test that only open and uncollectible balances are outstanding."""
        await add_invoice("INV-1", 1000)
        await add_invoice("INV-2", 700, status=InvoiceStatus.UNCOLLECTIBLE)
        await add_invoice("INV-3", 300, status=InvoiceStatus.PAID, balance_cents=0)
        await add_invoice("INV-4", 900, status=InvoiceStatus.DRAFT)
        await add_invoice("INV-5", 250, organization_id=OTHER_ORG_ID)
        repo = InvoiceRepository(test_db)

        assert await repo.sum_outstanding_balance(org_ctx) == 1700

    async def test_sum_outstanding_balance_without_invoices(self, test_db, org_ctx):
        """Test the empty outstanding balance."""
        repo = InvoiceRepository(test_db)

        assert await repo.sum_outstanding_balance(org_ctx) == 0

    async def test_get_upcoming_picks_earliest_due(
        self, test_db, org_ctx, add_invoice
    ):
        """Test that the open or draft invoice due first is upcoming."""
        await add_invoice("INV-LATE", 100, due_at=PERIOD_END + timedelta(days=30))
        soon = await add_invoice(
            "INV-SOON",
            100,
            status=InvoiceStatus.DRAFT,
            due_at=PERIOD_END + timedelta(days=3),
        )
        await add_invoice(
            "INV-PAID",
            100,
            status=InvoiceStatus.PAID,
            balance_cents=0,
            due_at=PERIOD_END + timedelta(days=1),
        )
        repo = InvoiceRepository(test_db)

        upcoming = await repo.get_upcoming(org_ctx)

        assert upcoming.id == soon.id

    async def test_list_recent_newest_first(self, test_db, org_ctx, add_invoice):
        """Test recent invoices ordering and limit."""
        for day in range(7):
            await add_invoice(
                f"INV-{day}", 100, issued_at=PERIOD_END + timedelta(days=day)
            )
        repo = InvoiceRepository(test_db)

        recent = await repo.list_recent(org_ctx, limit=5)

        assert [invoice.number for invoice in recent] == [
            "INV-6",
            "INV-5",
            "INV-4",
            "INV-3",
            "INV-2",
        ]


@pytest.mark.asyncio
class TestInvoiceLineRepository:
    """Tests for InvoiceLineRepository."""

    async def test_add_and_list_lines(self, test_db, org_ctx, add_invoice):
        """Test appending lines to an invoice."""
        invoice = await add_invoice("INV-1", 1500)
        repo = InvoiceLineRepository(test_db)

        await repo.add_lines(
            org_ctx,
            invoice.id,
            [
                InvoiceLineCreate(
                    line_type=InvoiceLineType.RECURRING,
                    feature_key="subscription",
                    unit_amount_cents=1000,
                    amount_cents=1000,
                ),
                InvoiceLineCreate(
                    line_type=InvoiceLineType.USAGE,
                    feature_key="api_calls",
                    quantity=Decimal("250"),
                    unit_amount_cents=2,
                    amount_cents=500,
                    line_metadata={"unit": "call"},
                ),
            ],
        )

        lines = await repo.list_for_invoice(org_ctx, invoice.id)
        assert [line.line_type for line in lines] == [
            InvoiceLineType.RECURRING,
            InvoiceLineType.USAGE,
        ]
        assert lines[0].quantity == Decimal(1)
        assert lines[1].quantity == Decimal("250")
        assert lines[1].line_metadata == {"unit": "call"}

    async def test_add_lines_to_other_organization_invoice_fails(
        self, test_db, add_invoice
    ):
        """Test that lines can only be added to the context's invoices."""
        invoice = await add_invoice("INV-1", 100)
        repo = InvoiceLineRepository(test_db)

        with pytest.raises(NotFoundError):
            await repo.add_lines(
                build_service_role_context(OTHER_ORG_ID),
                invoice.id,
                [
                    InvoiceLineCreate(
                        line_type=InvoiceLineType.ADJUSTMENT,
                        unit_amount_cents=100,
                        amount_cents=100,
                    )
                ],
            )

    async def test_list_lines_is_scoped_through_invoice(
        self, test_db, org_ctx, add_invoice
    ):
        """Test that another organization sees no lines of the invoice."""
        invoice = await add_invoice("INV-1", 100)
        repo = InvoiceLineRepository(test_db)
        await repo.add_lines(
            org_ctx,
            invoice.id,
            [
                InvoiceLineCreate(
                    line_type=InvoiceLineType.ONE_TIME,
                    unit_amount_cents=100,
                    amount_cents=100,
                )
            ],
        )

        lines = await repo.list_for_invoice(
            build_service_role_context(OTHER_ORG_ID), invoice.id
        )

        assert lines == []

    async def test_unscoped_context_is_refused(self, test_db):
        """Test that a context without organization cannot list lines."""
        repo = InvoiceLineRepository(test_db)

        with pytest.raises(AuthorizationError):
            await repo.list_for_invoice(build_service_role_context(), 1)


@pytest.mark.asyncio
class TestCreditMemoRepository:
    """Tests for CreditMemoRepository."""

    async def test_create_and_list_credit_memos(self, test_db, org_ctx, add_invoice):
        """Test issuing a credit memo against an invoice."""
        invoice = await add_invoice("INV-1", 1000)
        repo = CreditMemoRepository(test_db)

        memo = await repo.create(
            org_ctx,
            CreditMemoCreate(
                organization_id=invoice.organization_id,
                invoice_id=invoice.id,
                amount_cents=250,
                currency="usd",
                reason=CreditReason.PROMOTION,
                memo_metadata={"campaign": "spring"},
            ),
        )

        memos = await repo.list_for_invoice(org_ctx, invoice.id)
        assert [m.id for m in memos] == [memo.id]
        assert memos[0].reason == CreditReason.PROMOTION
        assert memos[0].memo_metadata == {"campaign": "spring"}

    async def test_create_for_other_organization_is_rejected(self, test_db, org_ctx):
        """Test that a context cannot issue credit for another organization."""
        repo = CreditMemoRepository(test_db)

        with pytest.raises(AuthorizationError):
            await repo.create(
                org_ctx,
                CreditMemoCreate(
                    organization_id=OTHER_ORG_ID,
                    amount_cents=100,
                    currency="usd",
                    reason=CreditReason.OTHER,
                ),
            )
