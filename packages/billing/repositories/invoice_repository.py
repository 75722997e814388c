"""
Repositories for invoices, invoice lines and credit memos.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import func, select, update

from common.core.exceptions import AuthorizationError, NotFoundError
from common.core.otel_axiom_exporter import trace_span
from common.repositories.base import OrganizationScopedRepository
from packages.auth.models.domain.authorization_context import AuthorizationContext
from packages.billing.models.database.credit_memo import CreditMemoEntity
from packages.billing.models.database.invoice import InvoiceEntity, InvoiceLineEntity
from packages.billing.models.domain.enums import InvoiceStatus
from packages.billing.models.domain.invoice import (
    CreditMemo,
    Invoice,
    InvoiceLine,
    InvoiceLineCreate,
)


class InvoiceRepository(OrganizationScopedRepository[InvoiceEntity, Invoice]):
    """Repository for invoice headers."""

    def __init__(self, db_session=None):
        super().__init__(InvoiceEntity, Invoice, db_session)

    @trace_span
    async def record_payment(
        self,
        ctx: AuthorizationContext,
        invoice_id: int,
        amount_cents: int,
        paid_at: datetime,
    ) -> Invoice:
        """
        Apply a payment to the invoice balance.

        The balance is reduced by amount_cents but never below zero; paid_at
        is set and the invoice becomes paid once nothing is owed. The row is
        locked for the read-modify-write on databases that support it.
        """
        async with self._get_session() as session:
            result = await session.execute(
                self._add_organization_filter(
                    select(InvoiceEntity.balance_cents, InvoiceEntity.status).where(
                        InvoiceEntity.id == invoice_id
                    ),
                    ctx,
                ).with_for_update()
            )
            row = result.one_or_none()
            if row is None:
                raise NotFoundError(f"Invoice {invoice_id} not found")

            balance = max(row.balance_cents - amount_cents, 0)
            values = {"balance_cents": balance, "paid_at": paid_at}
            if balance == 0:
                values["status"] = InvoiceStatus.PAID.value

            await session.execute(
                self._add_organization_filter(
                    update(InvoiceEntity).where(InvoiceEntity.id == invoice_id), ctx
                ).values(values)
            )
            await session.flush()

        return await self.get_scoped(ctx, invoice_id)

    @trace_span
    async def list_recent(
        self, ctx: AuthorizationContext, limit: int = 5
    ) -> list[Invoice]:
        """Most recently issued invoices first."""
        async with self._get_session() as session:
            result = await session.execute(
                self._add_organization_filter(select(InvoiceEntity), ctx)
                .order_by(InvoiceEntity.issued_at.desc(), InvoiceEntity.id.desc())
                .limit(limit)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def get_upcoming(self, ctx: AuthorizationContext) -> Optional[Invoice]:
        """Open or draft invoice that falls due first."""
        due = func.coalesce(InvoiceEntity.due_at, InvoiceEntity.issued_at)
        async with self._get_session() as session:
            result = await session.execute(
                self._add_organization_filter(
                    select(InvoiceEntity).where(
                        InvoiceEntity.status.in_(
                            [InvoiceStatus.OPEN.value, InvoiceStatus.DRAFT.value]
                        )
                    ),
                    ctx,
                )
                .order_by(due.asc(), InvoiceEntity.id)
                .limit(1)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def sum_outstanding_balance(self, ctx: AuthorizationContext) -> int:
        outstanding = [status.value for status in InvoiceStatus.outstanding_statuses()]
        async with self._get_session() as session:
            result = await session.execute(
                self._add_organization_filter(
                    select(func.coalesce(func.sum(InvoiceEntity.balance_cents), 0)).where(
                        InvoiceEntity.status.in_(outstanding)
                    ),
                    ctx,
                )
            )
            return int(result.scalar_one() or 0)


class InvoiceLineRepository(
    OrganizationScopedRepository[InvoiceLineEntity, InvoiceLine]
):
    """Invoice lines are append-only and scoped through their invoice."""

    def __init__(self, db_session=None):
        super().__init__(InvoiceLineEntity, InvoiceLine, db_session)

    def _invoice_ids(self, ctx: AuthorizationContext):
        if ctx.organization_id is None:
            raise AuthorizationError("Authorization context has no organization")
        return select(InvoiceEntity.id).where(
            InvoiceEntity.organization_id == ctx.organization_id
        )

    def _add_organization_filter(self, query, ctx: AuthorizationContext):
        return query.where(InvoiceLineEntity.invoice_id.in_(self._invoice_ids(ctx)))

    @trace_span
    async def add_lines(
        self,
        ctx: AuthorizationContext,
        invoice_id: int,
        lines: list[InvoiceLineCreate],
    ) -> list[InvoiceLine]:
        async with self._get_session() as session:
            result = await session.execute(
                self._invoice_ids(ctx).where(InvoiceEntity.id == invoice_id)
            )
            if result.scalar_one_or_none() is None:
                raise NotFoundError(f"Invoice {invoice_id} not found")

            entities = [
                InvoiceLineEntity(invoice_id=invoice_id, **line.model_dump())
                for line in lines
            ]
            session.add_all(entities)
            await session.flush()
            return self._entities_to_domain(entities)

    @trace_span
    async def list_for_invoice(
        self, ctx: AuthorizationContext, invoice_id: int
    ) -> list[InvoiceLine]:
        async with self._get_session() as session:
            result = await session.execute(
                self._add_organization_filter(
                    select(InvoiceLineEntity).where(
                        InvoiceLineEntity.invoice_id == invoice_id
                    ),
                    ctx,
                ).order_by(InvoiceLineEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())


class CreditMemoRepository(OrganizationScopedRepository[CreditMemoEntity, CreditMemo]):
    def __init__(self, db_session=None):
        super().__init__(CreditMemoEntity, CreditMemo, db_session)

    @trace_span
    async def list_for_invoice(
        self, ctx: AuthorizationContext, invoice_id: int
    ) -> list[CreditMemo]:
        async with self._get_session() as session:
            result = await session.execute(
                self._add_organization_filter(
                    select(CreditMemoEntity).where(
                        CreditMemoEntity.invoice_id == invoice_id
                    ),
                    ctx,
                ).order_by(CreditMemoEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())
