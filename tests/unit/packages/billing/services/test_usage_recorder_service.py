"""
Unit tests for UsageRecorderService.
"""

import logging
import pytest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

from packages.auth.models.domain.authorization_context import (
    build_service_role_context,
)
from packages.billing.models.domain.enums import UsageSource
from packages.billing.models.schemas.jobs import UsageEventBatch
from packages.billing.repositories.usage_repository import UsageEventRepository
from packages.billing.services.usage_recorder_service import UsageRecorderService
from tests.conftest import ORG_ID, OTHER_ORG_ID, PERIOD_START


def batch(*events) -> UsageEventBatch:
    return UsageEventBatch.model_validate({"events": list(events)})


def event(**overrides) -> dict:
    data = {
        "organizationId": ORG_ID,
        "featureKey": "api_calls",
        "quantity": "1",
        "unit": "call",
        "recordedAt": (PERIOD_START + timedelta(hours=2)).isoformat(),
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
class TestUsageRecorderService:
    """Tests for UsageRecorderService with the real repositories."""

    async def test_records_events_and_resolves_subscription(
        self, sample_subscription
    ):
        """Test that events without subscription get the active subscription."""
        service = UsageRecorderService()

        result = await service.record_events(
            batch(event(), event(quantity="2.5", source="PORTAL"))
        )

        assert result.accepted == 2
        stored = await UsageEventRepository().list_for_organization(
            build_service_role_context(ORG_ID)
        )
        assert {e.subscription_id for e in stored} == {sample_subscription.id}
        assert {e.source for e in stored} == {UsageSource.API, UsageSource.PORTAL}
        assert sum(e.quantity for e in stored) == Decimal("3.5")

    async def test_explicit_subscription_is_kept(self, sample_subscription):
        """Test that a caller supplied subscription_id is not replaced."""
        service = UsageRecorderService()

        await service.record_events(batch(event(subscriptionId=9999)))

        stored = await UsageEventRepository().list_for_organization(
            build_service_role_context(ORG_ID)
        )
        assert stored[0].subscription_id == 9999

    async def test_organization_without_subscription_still_records(self):
        """Test that events are stored with no subscription when none is active."""
        service = UsageRecorderService()

        result = await service.record_events(batch(event()))

        assert result.accepted == 1
        stored = await UsageEventRepository().list_for_organization(
            build_service_role_context(ORG_ID)
        )
        assert stored[0].subscription_id is None

    async def test_missing_recorded_at_defaults_to_now(self, sample_subscription):
        """Test the recorded_at default."""
        service = UsageRecorderService()
        payload = event()
        del payload["recordedAt"]

        await service.record_events(batch(payload))

        stored = await UsageEventRepository().list_for_organization(
            build_service_role_context(ORG_ID)
        )
        assert stored[0].recorded_at.year >= 2024
        assert stored[0].recorded_at.tzinfo is not None

    async def test_duplicate_fingerprints_are_dropped_with_warning(
        self, sample_subscription, caplog
    ):
        """Test partial acceptance when a fingerprint repeats."""
        service = UsageRecorderService()
        await service.record_events(batch(event(fingerprint="req-1")))

        with caplog.at_level(logging.WARNING):
            result = await service.record_events(
                batch(event(fingerprint="req-1"), event(fingerprint="req-2"))
            )

        assert result.accepted == 1
        drops = [r for r in caplog.records if r.getMessage() == "billing_usage_event_drop"]
        assert len(drops) == 1
        assert drops[0].attempted == 2
        assert drops[0].accepted == 1
        assert drops[0].dropped == 1

    async def test_failed_organization_group_does_not_fail_batch(self):
        """Test that one organization's insert failure only drops its events."""

        async def insert_events(ctx, rows):
            if ctx.organization_id == OTHER_ORG_ID:
                raise RuntimeError("connection reset")
            return len(rows)

        usage_repo = AsyncMock()
        usage_repo.insert_events = AsyncMock(side_effect=insert_events)
        subscription_repo = AsyncMock()
        subscription_repo.get_active = AsyncMock(return_value=None)
        service = UsageRecorderService(usage_repo, subscription_repo)

        result = await service.record_events(
            batch(
                event(),
                event(organizationId=OTHER_ORG_ID),
                event(organizationId=OTHER_ORG_ID),
                event(),
            )
        )

        assert result.accepted == 2
        assert usage_repo.insert_events.await_count == 2

    async def test_subscription_lookup_failure_still_records(self):
        """Test that events are stored even when the subscription lookup fails."""
        usage_repo = AsyncMock()
        usage_repo.insert_events = AsyncMock(return_value=1)
        subscription_repo = AsyncMock()
        subscription_repo.get_active = AsyncMock(side_effect=RuntimeError("timeout"))
        service = UsageRecorderService(usage_repo, subscription_repo)

        result = await service.record_events(batch(event()))

        assert result.accepted == 1
        rows = usage_repo.insert_events.await_args.args[1]
        assert rows[0].subscription_id is None

    async def test_lookup_skipped_when_every_event_has_subscription(self):
        """Test that no lookup happens when nothing needs resolving."""
        usage_repo = AsyncMock()
        usage_repo.insert_events = AsyncMock(return_value=1)
        subscription_repo = AsyncMock()
        service = UsageRecorderService(usage_repo, subscription_repo)

        await service.record_events(batch(event(subscriptionId=5)))

        subscription_repo.get_active.assert_not_awaited()
