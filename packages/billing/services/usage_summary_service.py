"""
Read-side service behind the organization usage overview.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.context import readonly
from packages.auth.models.domain.authorization_context import AuthorizationContext
from packages.billing.models.domain.enums import (
    UsageResolution,
    UsageWarningStatus,
)
from packages.billing.models.domain.overview import (
    USAGE_WARNING_THRESHOLD_PERCENT,
    FeatureWarning,
    UsageOverview,
    UsageSummary,
)
from packages.billing.models.domain.package import FeatureLimit
from packages.billing.models.domain.usage import UsageAggregate
from packages.billing.repositories.invoice_repository import InvoiceRepository
from packages.billing.repositories.package_repository import PackageRepository
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.usage_repository import UsageAggregateRepository

logger = get_logger(__name__)

RECENT_AGGREGATE_LIMIT = 24
RECENT_INVOICE_LIMIT = 5

EXCEEDED_MESSAGE = "This feature has exceeded its plan limit."
APPROACHING_MESSAGE = "This feature is approaching its plan limit."


def percentage_used(quantity: Decimal, limit_value: Optional[int]) -> Optional[float]:
    if not limit_value or limit_value <= 0:
        return None
    percent = quantity / Decimal(limit_value) * 100
    return float(percent.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class UsageSummaryService:
    def __init__(
        self,
        subscription_repo: Optional[SubscriptionRepository] = None,
        package_repo: Optional[PackageRepository] = None,
        aggregate_repo: Optional[UsageAggregateRepository] = None,
        invoice_repo: Optional[InvoiceRepository] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.package_repo = package_repo or PackageRepository()
        self.aggregate_repo = aggregate_repo or UsageAggregateRepository()
        self.invoice_repo = invoice_repo or InvoiceRepository()

    @readonly
    @trace_span
    async def get_usage_overview(self, ctx: AuthorizationContext) -> UsageOverview:
        """
        Usage, limits and balances for the context's organization.

        Summaries cover the most recent monthly aggregates of the active
        subscription (or of every subscription when none is active).
        """
        subscription = await self.subscription_repo.get_active(ctx)

        limits: dict[str, FeatureLimit] = {}
        if subscription is not None:
            package = await self.package_repo.get(subscription.package_id)
            if package is not None:
                limits = package.limits_by_feature()

        aggregates = await self.aggregate_repo.list_recent(
            ctx,
            UsageResolution.MONTHLY,
            subscription_id=subscription.id if subscription else None,
            limit=RECENT_AGGREGATE_LIMIT,
        )
        summaries = [
            self._summarize(aggregate, limits.get(aggregate.feature_key))
            for aggregate in aggregates
        ]

        overview = UsageOverview(
            organization_id=ctx.organization_id,
            subscription=subscription,
            usage_summaries=summaries,
            feature_warnings=self._warnings(summaries),
            outstanding_balance_cents=await self.invoice_repo.sum_outstanding_balance(
                ctx
            ),
            upcoming_invoice=await self.invoice_repo.get_upcoming(ctx),
            recent_invoices=await self.invoice_repo.list_recent(
                ctx, limit=RECENT_INVOICE_LIMIT
            ),
        )
        logger.debug(
            f"Built usage overview for organization {ctx.organization_id}",
            extra={
                "organization_id": ctx.organization_id,
                "summaries": len(summaries),
                "warnings": len(overview.feature_warnings),
            },
        )
        return overview

    def _summarize(
        self, aggregate: UsageAggregate, limit: Optional[FeatureLimit]
    ) -> UsageSummary:
        summary = UsageSummary(
            feature_key=aggregate.feature_key,
            resolution=aggregate.resolution,
            total_quantity=aggregate.quantity,
            unit=aggregate.unit,
            period_start=aggregate.period_start,
            period_end=aggregate.period_end,
        )
        if limit is not None:
            summary.limit_type = limit.limit_type
            summary.limit_value = limit.limit_value
            summary.limit_unit = limit.limit_unit
            summary.usage_period = limit.usage_period
            summary.percentage_used = percentage_used(
                aggregate.quantity, limit.limit_value
            )
        return summary

    def _warnings(self, summaries: list[UsageSummary]) -> list[FeatureWarning]:
        warnings = []
        for summary in summaries:
            if summary.percentage_used is None:
                continue
            if summary.percentage_used < USAGE_WARNING_THRESHOLD_PERCENT:
                continue
            exceeded = summary.percentage_used >= 100
            warnings.append(
                FeatureWarning(
                    feature_key=summary.feature_key,
                    status=(
                        UsageWarningStatus.EXCEEDED
                        if exceeded
                        else UsageWarningStatus.APPROACHING
                    ),
                    current_percent=summary.percentage_used,
                    message=EXCEEDED_MESSAGE if exceeded else APPROACHING_MESSAGE,
                )
            )
        return warnings
