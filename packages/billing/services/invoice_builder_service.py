"""
Service that turns a billing period into an invoice.

Lines are assembled in a fixed order: the recurring charge, one line per
usage charge, caller supplied extra lines and finally tax. All amounts are
integer cents; usage quantities stay Decimal until the final half-up
rounding to whole cents.
"""

import re
import time
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.exc import IntegrityError

from common.core.config import settings
from common.core.exceptions import NotFoundError, PolicyViolationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.auth.models.domain.authorization_context import (
    AuthorizationContext,
    build_service_role_context,
)
from packages.billing.models.domain.enums import InvoiceLineType
from packages.billing.models.domain.invoice import InvoiceCreate, InvoiceLineCreate
from packages.billing.models.domain.subscription import Subscription
from packages.billing.models.domain.types import utc_now
from packages.billing.models.schemas.jobs import (
    InvoiceBuildResult,
    InvoiceJob,
    UsageChargeSpec,
)
from packages.billing.repositories.invoice_repository import (
    InvoiceLineRepository,
    InvoiceRepository,
)
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.usage_repository import UsageAggregateRepository

logger = get_logger(__name__)

RECURRING_FEATURE_KEY = "subscription"
BASIS_POINTS = Decimal(10000)


def round_half_up(value: Decimal) -> int:
    """Round to a whole number of cents, halves away from zero."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def default_invoice_number(organization_id: str, issued_at: datetime) -> str:
    suffix = re.sub(r"[^A-Za-z0-9]", "", organization_id)[-6:].upper()
    if not suffix:
        suffix = uuid.uuid4().hex[:6].upper()
    return f"INV-{issued_at:%Y%m%d}-{suffix}"


class InvoiceBuilderService:
    def __init__(
        self,
        subscription_repo: Optional[SubscriptionRepository] = None,
        aggregate_repo: Optional[UsageAggregateRepository] = None,
        invoice_repo: Optional[InvoiceRepository] = None,
        line_repo: Optional[InvoiceLineRepository] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.aggregate_repo = aggregate_repo or UsageAggregateRepository()
        self.invoice_repo = invoice_repo or InvoiceRepository()
        self.line_repo = line_repo or InvoiceLineRepository()

    @trace_span
    async def build_invoice(self, job: InvoiceJob) -> InvoiceBuildResult:
        """
        Build, persist and optionally settle one invoice.

        Raises:
            PolicyViolationError: bad period, or nothing would be invoiced
            NotFoundError: the subscription cannot be resolved
        """
        if job.period_end <= job.period_start:
            raise PolicyViolationError("period_end must be after period_start")

        start = time.perf_counter()
        ctx = build_service_role_context(job.organization_id)
        logger.info(
            f"Building invoice for organization {job.organization_id}",
            extra={
                "organization_id": job.organization_id,
                "subscription_id": job.subscription_id,
                "period_start": job.period_start.isoformat(),
                "period_end": job.period_end.isoformat(),
            },
        )

        subscription = await self._resolve_subscription(ctx, job)

        lines: list[InvoiceLineCreate] = []
        recurring = self._recurring_line(job, subscription)
        if recurring:
            lines.append(recurring)
        for charge in job.usage_charges:
            line = await self._usage_line(ctx, job, subscription, charge)
            if line:
                lines.append(line)
        for extra in job.extra_lines:
            lines.append(
                InvoiceLineCreate(
                    line_type=extra.line_type,
                    description=extra.description,
                    feature_key=extra.feature_key,
                    quantity=extra.quantity,
                    unit_amount_cents=extra.unit_amount_cents,
                    amount_cents=extra.amount_cents,
                    usage_period_start=extra.usage_period_start,
                    usage_period_end=extra.usage_period_end,
                    line_metadata=extra.metadata,
                )
            )

        if not lines and not job.tax_cents and job.settle is None:
            raise PolicyViolationError(
                "invoice job did not produce any billable lines"
            )

        subtotal = sum(line.amount_cents for line in lines)
        tax = self._tax_cents(job, subtotal)
        if tax != 0:
            lines.append(
                InvoiceLineCreate(
                    line_type=InvoiceLineType.TAX,
                    description="Tax",
                    unit_amount_cents=tax,
                    amount_cents=tax,
                )
            )
        total = subtotal + tax

        issued_at = job.issue_date or utc_now()
        currency = (
            job.currency or subscription.currency or settings.billing_default_currency
        )
        invoice_create = InvoiceCreate(
            organization_id=job.organization_id,
            subscription_id=subscription.id,
            number=job.invoice_number
            or default_invoice_number(job.organization_id, issued_at),
            status=job.status,
            currency=currency.lower(),
            subtotal_cents=subtotal,
            tax_cents=tax,
            total_cents=total,
            balance_cents=total,
            issued_at=issued_at,
            due_at=job.due_date or job.period_end,
            invoice_metadata=job.metadata,
        )

        try:
            async with transaction():
                invoice = await self.invoice_repo.create(ctx, invoice_create)
                if lines:
                    await self.line_repo.add_lines(ctx, invoice.id, lines)

                if job.settle is not None:
                    invoice = await self.invoice_repo.record_payment(
                        ctx,
                        invoice.id,
                        amount_cents=(
                            job.settle.amount_cents
                            if job.settle.amount_cents is not None
                            else invoice.total_cents
                        ),
                        paid_at=job.settle.paid_at or utc_now(),
                    )
        except IntegrityError as e:
            logger.error(
                f"Invoice number {invoice_create.number} is already in use",
                extra={
                    "organization_id": job.organization_id,
                    "invoice_number": invoice_create.number,
                },
            )
            raise PolicyViolationError(
                f"Invoice number {invoice_create.number} already exists"
            ) from e

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Built invoice {invoice.number}",
            extra={
                "organization_id": job.organization_id,
                "invoice_id": invoice.id,
                "status": invoice.status.value,
                "total_cents": invoice.total_cents,
                "line_count": len(lines),
                "duration_ms": duration_ms,
            },
        )
        return InvoiceBuildResult(
            invoice_id=invoice.id,
            status=invoice.status,
            subtotal_cents=invoice.subtotal_cents,
            tax_cents=invoice.tax_cents,
            total_cents=invoice.total_cents,
            line_count=len(lines),
            duration_ms=duration_ms,
        )

    async def _resolve_subscription(
        self, ctx: AuthorizationContext, job: InvoiceJob
    ) -> Subscription:
        if job.subscription_id is not None:
            subscription = await self.subscription_repo.get_scoped(
                ctx, job.subscription_id
            )
            if subscription is None:
                raise NotFoundError(f"Subscription {job.subscription_id} not found")
            return subscription

        subscription = await self.subscription_repo.get_active(ctx)
        if subscription is None:
            raise NotFoundError(
                f"No active subscription for organization {job.organization_id}"
            )
        return subscription

    def _recurring_line(
        self, job: InvoiceJob, subscription: Subscription
    ) -> Optional[InvoiceLineCreate]:
        amount = (
            job.recurring_amount_cents
            if job.recurring_amount_cents is not None
            else subscription.amount_cents
        )
        if amount <= 0:
            return None
        return InvoiceLineCreate(
            line_type=InvoiceLineType.RECURRING,
            description=job.recurring_description
            or subscription.billing_interval.describe(),
            feature_key=RECURRING_FEATURE_KEY,
            unit_amount_cents=amount,
            amount_cents=amount,
            usage_period_start=job.period_start,
            usage_period_end=job.period_end,
        )

    async def _usage_line(
        self,
        ctx: AuthorizationContext,
        job: InvoiceJob,
        subscription: Subscription,
        charge: UsageChargeSpec,
    ) -> Optional[InvoiceLineCreate]:
        quantity = await self.aggregate_repo.sum_within(
            ctx,
            subscription.id,
            charge.feature_key,
            charge.resolution,
            job.period_start,
            job.period_end,
        )
        amount = round_half_up(quantity * charge.unit_amount_cents)
        if charge.minimum_amount_cents:
            amount = max(amount, charge.minimum_amount_cents)
        elif amount == 0:
            return None

        return InvoiceLineCreate(
            line_type=InvoiceLineType.USAGE,
            description=charge.description or f"Usage for {charge.feature_key}",
            feature_key=charge.feature_key,
            quantity=quantity,
            unit_amount_cents=charge.unit_amount_cents,
            amount_cents=amount,
            usage_period_start=charge.usage_period_start or job.period_start,
            usage_period_end=charge.usage_period_end or job.period_end,
            line_metadata={"unit": charge.unit},
        )

    def _tax_cents(self, job: InvoiceJob, subtotal: int) -> int:
        if job.tax_cents is not None:
            return job.tax_cents
        if job.tax_rate_bps is not None:
            return round_half_up(Decimal(subtotal) * job.tax_rate_bps / BASIS_POINTS)
        return 0
