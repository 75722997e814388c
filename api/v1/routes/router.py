from fastapi import APIRouter

from api.v1.routes import (
    health,
)
from packages.billing.routes import internal as billing_internal

api_router = APIRouter()

# Health check (no auth required)
api_router.include_router(health.router, prefix="/health", tags=["health"])

# Internal billing routes (service-to-service; gated by the billing kill switch)
api_router.include_router(
    billing_internal.router,
    prefix="/billing/internal",
    tags=["billing-internal"],
)
