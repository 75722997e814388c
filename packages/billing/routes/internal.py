"""
Internal billing API routes.

Service-to-service endpoints that record usage synchronously and hand the
heavier pipeline stages to their worker queues. Every endpoint answers 404
while billing is switched off.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from common.core.config import settings
from common.core.exceptions import (
    AppException,
    AuthorizationError,
    JobDispatchError,
    LockAcquisitionError,
    NotFoundError,
    PolicyViolationError,
    ValidationError,
)
from packages.auth.models.domain.authorization_context import (
    build_service_role_context,
)
from packages.billing.models.schemas.billing import UsageOverviewResponse
from packages.billing.models.schemas.jobs import (
    InvoiceJob,
    JobEnqueuedResponse,
    PaymentSyncJob,
    UsageAggregateJob,
    UsageBackfillRequest,
    UsageBackfillResponse,
    UsageEventBatch,
    UsageRecordResult,
)
from packages.billing.services.billing_job_service import BillingJobService
from packages.billing.services.usage_recorder_service import UsageRecorderService
from packages.billing.services.usage_summary_service import UsageSummaryService


def require_billing_enabled():
    if not settings.billing_enabled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="billing_disabled"
        )


router = APIRouter(dependencies=[Depends(require_billing_enabled)])


def get_usage_recorder_service() -> UsageRecorderService:
    return UsageRecorderService()


def get_usage_summary_service() -> UsageSummaryService:
    return UsageSummaryService()


def get_billing_job_service() -> BillingJobService:
    return BillingJobService()


_STATUS_BY_ERROR = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PolicyViolationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (LockAcquisitionError, status.HTTP_409_CONFLICT),
    (JobDispatchError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def _to_http_error(error: AppException) -> HTTPException:
    for error_class, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_class):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error)
    )


# ============================================================================
# Usage Recording
# ============================================================================


@router.post(
    "/usage/events",
    response_model=UsageRecordResult,
    status_code=status.HTTP_202_ACCEPTED,
)
async def record_usage_events(
    batch: UsageEventBatch,
    recorder: UsageRecorderService = Depends(get_usage_recorder_service),
):
    """Record a batch of usage events. Returns how many were newly stored."""
    return await recorder.record_events(batch)


# ============================================================================
# Job Dispatch
# ============================================================================


@router.post(
    "/jobs/usage-aggregation",
    response_model=JobEnqueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def enqueue_usage_aggregation(
    job: UsageAggregateJob,
    idempotency_key: Optional[str] = Header(default=None),
    job_service: BillingJobService = Depends(get_billing_job_service),
):
    if job.period_end <= job.period_start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="period_end must be after period_start",
        )
    try:
        return await job_service.enqueue_usage_aggregation(job, idempotency_key)
    except AppException as e:
        raise _to_http_error(e) from e


@router.post(
    "/jobs/usage-backfill",
    response_model=UsageBackfillResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def enqueue_usage_backfill(
    request: UsageBackfillRequest,
    job_service: BillingJobService = Depends(get_billing_job_service),
):
    """Enqueue backfill aggregation jobs covering the requested range."""
    try:
        return await job_service.enqueue_backfill(request)
    except AppException as e:
        raise _to_http_error(e) from e


@router.post(
    "/jobs/invoices",
    response_model=JobEnqueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def enqueue_invoice(
    job: InvoiceJob,
    idempotency_key: Optional[str] = Header(default=None),
    job_service: BillingJobService = Depends(get_billing_job_service),
):
    if job.period_end <= job.period_start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="period_end must be after period_start",
        )
    try:
        return await job_service.enqueue_invoice(job, idempotency_key)
    except AppException as e:
        raise _to_http_error(e) from e


@router.post(
    "/jobs/payment-sync",
    response_model=JobEnqueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def enqueue_payment_sync(
    job: PaymentSyncJob,
    idempotency_key: Optional[str] = Header(default=None),
    job_service: BillingJobService = Depends(get_billing_job_service),
):
    try:
        return await job_service.enqueue_payment_sync(job, idempotency_key)
    except AppException as e:
        raise _to_http_error(e) from e


# ============================================================================
# Usage Overview
# ============================================================================


@router.get(
    "/organizations/{organization_id}/usage",
    response_model=UsageOverviewResponse,
)
async def get_usage_overview(
    organization_id: str,
    summary_service: UsageSummaryService = Depends(get_usage_summary_service),
):
    """Usage against package limits, warnings and invoice balances."""
    ctx = build_service_role_context(organization_id)
    try:
        overview = await summary_service.get_usage_overview(ctx)
    except AppException as e:
        raise _to_http_error(e) from e
    return UsageOverviewResponse.model_validate(overview, from_attributes=True)
