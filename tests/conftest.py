# Shared pytest configuration and fixtures for all test types
import pytest_asyncio
from datetime import datetime, timezone
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from api.main import app
from common.db.base import Base
from packages.auth.models.domain.authorization_context import (
    build_service_role_context,
)
from packages.billing.models.database import (
    FeatureLimitEntity,
    InvoiceEntity,
    PackageEntity,
    SubscriptionEntity,
    UsageAggregateEntity,
    UsageEventEntity,
)
from packages.billing.models.domain.enums import (
    BillingInterval,
    InvoiceStatus,
    LimitType,
    SubscriptionStatus,
    UsagePeriod,
    UsageResolution,
    UsageSource,
)

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ORG_ID = "org_acme_42"
OTHER_ORG_ID = "org_globex_7"

PERIOD_START = datetime(2024, 1, 1, tzinfo=timezone.utc)
PERIOD_END = datetime(2024, 2, 1, tzinfo=timezone.utc)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so nested transaction()
    calls create savepoints instead of real nested transactions.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", test_session_factory
    )


@pytest_asyncio.fixture(scope="function")
async def client():
    """Create a test client."""
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


# ============================================================================
# Billing fixtures
# ============================================================================


@pytest_asyncio.fixture(scope="function")
async def org_ctx():
    return build_service_role_context(ORG_ID)


@pytest_asyncio.fixture(scope="function")
async def sample_package(test_db: AsyncSession):
    """Package with a hard monthly API call limit and a soft storage limit."""
    package = PackageEntity(
        slug="growth",
        name="Growth",
        active=True,
        feature_limits=[
            FeatureLimitEntity(
                feature_key="api_calls",
                limit_type=LimitType.HARD.value,
                limit_value=1000,
                limit_unit="call",
                usage_period=UsagePeriod.MONTHLY.value,
            ),
            FeatureLimitEntity(
                feature_key="storage_gb",
                limit_type=LimitType.SOFT.value,
                limit_value=100,
                limit_unit="gb",
                usage_period=UsagePeriod.BILLING_PERIOD.value,
            ),
            FeatureLimitEntity(
                feature_key="seats",
                limit_type=LimitType.UNLIMITED.value,
            ),
        ],
    )
    test_db.add(package)
    await test_db.commit()
    await test_db.refresh(package)
    return package


@pytest_asyncio.fixture(scope="function")
async def sample_subscription(test_db: AsyncSession, sample_package):
    """Active monthly subscription for ORG_ID at 49.00 usd."""
    subscription = SubscriptionEntity(
        organization_id=ORG_ID,
        package_id=sample_package.id,
        status=SubscriptionStatus.ACTIVE.value,
        currency="usd",
        amount_cents=4900,
        billing_interval=BillingInterval.MONTH.value,
        current_period_start=PERIOD_START,
        current_period_end=PERIOD_END,
        cancel_at_period_end=False,
    )
    test_db.add(subscription)
    await test_db.commit()
    await test_db.refresh(subscription)
    return subscription


@pytest_asyncio.fixture(scope="function")
async def add_usage_event(test_db: AsyncSession):
    """Insert a raw usage event directly."""

    async def _add(
        feature_key: str,
        quantity: str,
        recorded_at: datetime,
        subscription_id: int,
        unit: str = "call",
        organization_id: str = ORG_ID,
        fingerprint: str = None,
    ) -> UsageEventEntity:
        event = UsageEventEntity(
            organization_id=organization_id,
            subscription_id=subscription_id,
            feature_key=feature_key,
            quantity=Decimal(quantity),
            unit=unit,
            recorded_at=recorded_at,
            source=UsageSource.API.value,
            fingerprint=fingerprint,
        )
        test_db.add(event)
        await test_db.commit()
        return event

    return _add


@pytest_asyncio.fixture(scope="function")
async def add_usage_aggregate(test_db: AsyncSession):
    """Insert a usage aggregate directly."""

    async def _add(
        feature_key: str,
        quantity: str,
        period_start: datetime,
        period_end: datetime,
        subscription_id: int,
        resolution: UsageResolution = UsageResolution.DAILY,
        unit: str = "call",
        organization_id: str = ORG_ID,
    ) -> UsageAggregateEntity:
        aggregate = UsageAggregateEntity(
            organization_id=organization_id,
            subscription_id=subscription_id,
            feature_key=feature_key,
            resolution=resolution.value,
            period_start=period_start,
            period_end=period_end,
            quantity=Decimal(quantity),
            unit=unit,
            source=UsageSource.WORKER.value,
        )
        test_db.add(aggregate)
        await test_db.commit()
        return aggregate

    return _add


@pytest_asyncio.fixture(scope="function")
async def add_invoice(test_db: AsyncSession):
    """Insert an invoice header directly."""

    async def _add(
        number: str,
        total_cents: int,
        status: InvoiceStatus = InvoiceStatus.OPEN,
        balance_cents: int = None,
        issued_at: datetime = PERIOD_END,
        due_at: datetime = None,
        subscription_id: int = None,
        organization_id: str = ORG_ID,
    ) -> InvoiceEntity:
        invoice = InvoiceEntity(
            organization_id=organization_id,
            subscription_id=subscription_id,
            number=number,
            status=status.value,
            currency="usd",
            subtotal_cents=total_cents,
            tax_cents=0,
            total_cents=total_cents,
            balance_cents=total_cents if balance_cents is None else balance_cents,
            issued_at=issued_at,
            due_at=due_at,
        )
        test_db.add(invoice)
        await test_db.commit()
        await test_db.refresh(invoice)
        return invoice

    return _add
