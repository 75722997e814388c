"""
Repository for applied payment sync events.
"""

from typing import Optional
from sqlalchemy import select

from common.repositories.base import OrganizationScopedRepository
from packages.auth.models.domain.authorization_context import AuthorizationContext
from packages.billing.models.database.payment_sync_event import PaymentSyncEventEntity
from packages.billing.models.domain.enums import PaymentSyncEventType
from packages.billing.models.domain.payment_sync import PaymentSyncEvent
from common.core.otel_axiom_exporter import trace_span


class PaymentSyncEventRepository(
    OrganizationScopedRepository[PaymentSyncEventEntity, PaymentSyncEvent]
):
    def __init__(self, db_session=None):
        super().__init__(PaymentSyncEventEntity, PaymentSyncEvent, db_session)

    @trace_span
    async def get_applied(
        self,
        ctx: AuthorizationContext,
        invoice_id: int,
        event: PaymentSyncEventType,
        external_payment_id: str,
    ) -> Optional[PaymentSyncEvent]:
        """The earlier application of this external event, if any."""
        async with self._get_session() as session:
            result = await session.execute(
                self._add_organization_filter(
                    select(PaymentSyncEventEntity).where(
                        PaymentSyncEventEntity.invoice_id == invoice_id,
                        PaymentSyncEventEntity.event == event.value,
                        PaymentSyncEventEntity.external_payment_id
                        == external_payment_id,
                    ),
                    ctx,
                )
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None
