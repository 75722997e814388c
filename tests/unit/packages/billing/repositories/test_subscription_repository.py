"""
Unit tests for SubscriptionRepository and PackageRepository.

Tests database operations for subscriptions without mocking the database.
"""

import pytest

from common.core.exceptions import AuthorizationError
from packages.auth.models.domain.authorization_context import (
    build_service_role_context,
)
from packages.billing.models.database import SubscriptionEntity
from packages.billing.models.domain.enums import (
    BillingInterval,
    LimitType,
    SubscriptionStatus,
)
from packages.billing.repositories.package_repository import PackageRepository
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from tests.conftest import ORG_ID, OTHER_ORG_ID, PERIOD_END, PERIOD_START


async def add_subscription(test_db, package_id, status, organization_id=ORG_ID):
    subscription = SubscriptionEntity(
        organization_id=organization_id,
        package_id=package_id,
        status=status.value,
        currency="eur",
        amount_cents=1000,
        billing_interval=BillingInterval.YEAR.value,
        current_period_start=PERIOD_START,
        current_period_end=PERIOD_END,
    )
    test_db.add(subscription)
    await test_db.commit()
    await test_db.refresh(subscription)
    return subscription


@pytest.mark.asyncio
class TestSubscriptionRepository:
    """Tests for SubscriptionRepository."""

    async def test_get_active_subscription(
        self, test_db, org_ctx, sample_subscription
    ):
        """Test getting the organization's active subscription."""
        repo = SubscriptionRepository(test_db)

        subscription = await repo.get_active(org_ctx)

        assert subscription is not None
        assert subscription.id == sample_subscription.id
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.billing_interval == BillingInterval.MONTH
        assert subscription.amount_cents == 4900

    async def test_get_active_prefers_newest(
        self, test_db, org_ctx, sample_package, sample_subscription
    ):
        """Test that the newest trialing/active/past_due subscription wins."""
        newer = await add_subscription(
            test_db, sample_package.id, SubscriptionStatus.PAST_DUE
        )
        repo = SubscriptionRepository(test_db)

        subscription = await repo.get_active(org_ctx)

        assert subscription.id == newer.id
        assert subscription.status == SubscriptionStatus.PAST_DUE

    async def test_get_active_ignores_canceled(
        self, test_db, org_ctx, sample_package
    ):
        """Test that canceled subscriptions are not active."""
        await add_subscription(test_db, sample_package.id, SubscriptionStatus.CANCELED)
        repo = SubscriptionRepository(test_db)

        assert await repo.get_active(org_ctx) is None

    async def test_get_active_is_scoped_to_organization(
        self, test_db, sample_subscription
    ):
        """Test that another organization does not see the subscription."""
        repo = SubscriptionRepository(test_db)

        subscription = await repo.get_active(build_service_role_context(OTHER_ORG_ID))

        assert subscription is None

    async def test_get_scoped_hides_other_organizations(
        self, test_db, sample_package, sample_subscription
    ):
        """Test that get_scoped applies the organization filter."""
        other = await add_subscription(
            test_db,
            sample_package.id,
            SubscriptionStatus.ACTIVE,
            organization_id=OTHER_ORG_ID,
        )
        repo = SubscriptionRepository(test_db)

        ctx = build_service_role_context(ORG_ID)
        assert await repo.get_scoped(ctx, other.id) is None
        assert (await repo.get_scoped(ctx, sample_subscription.id)) is not None

    async def test_list_for_organization(
        self, test_db, org_ctx, sample_package, sample_subscription
    ):
        """Test listing every subscription regardless of status."""
        await add_subscription(test_db, sample_package.id, SubscriptionStatus.CANCELED)
        repo = SubscriptionRepository(test_db)

        subscriptions = await repo.list_for_organization(org_ctx)

        assert len(subscriptions) == 2

    async def test_unscoped_context_is_refused(self, test_db):
        """Test that a context without organization cannot query."""
        repo = SubscriptionRepository(test_db)

        with pytest.raises(AuthorizationError):
            await repo.get_active(build_service_role_context())


@pytest.mark.asyncio
class TestPackageRepository:
    """Tests for PackageRepository."""

    async def test_get_package_with_limits(self, test_db, sample_package):
        """Test loading a package with its feature limits."""
        repo = PackageRepository(test_db)

        package = await repo.get(sample_package.id)

        limits = package.limits_by_feature()
        assert set(limits) == {"api_calls", "storage_gb", "seats"}
        assert limits["api_calls"].limit_type == LimitType.HARD
        assert limits["api_calls"].limit_value == 1000
        assert limits["seats"].limit_value is None

    async def test_get_by_slug(self, test_db, sample_package):
        """Test looking a package up by slug."""
        repo = PackageRepository(test_db)

        package = await repo.get_by_slug("growth")
        missing = await repo.get_by_slug("enterprise")

        assert package.id == sample_package.id
        assert missing is None
