# Shared pytest configuration and fixtures for all test types
import pytest
import pytest_asyncio
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from slowapi import Limiter
from slowapi.util import get_remote_address
from unittest.mock import AsyncMock, MagicMock, patch
from datetime import datetime, timezone

# Create test limiter with no limits and in-memory storage
test_limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
)

# Patch the limiter before importing the app so decorators use test limiter
with patch("common.providers.rate_limiter.limiter.limiter", test_limiter):
    from api.main import app

from common.core.config import settings
from common.db.base import Base
from common.db.session import get_db
from common.providers.email.interface import EmailInterface
from packages.subscriptions.dependencies import build_services, get_services
from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.models.database.order import (
    OrderMetaEntity,
    OrderNoteEntity,
    ProcessorReferenceEntity,
)
from packages.subscriptions.models.domain.enums import (
    BillingPeriod,
    LicenseStatus,
    OrderStatus,
    SubscriptionStatus,
)
from packages.subscriptions.models.domain.license import License, LicenseUpdateResult
from packages.subscriptions.models.domain.order import Order, OrderLineItem
from packages.subscriptions.models.domain.subscription import SubscriptionCreateModel
from packages.subscriptions.providers.license.interface import LicenseGatewayInterface
from packages.subscriptions.providers.processor.interface import (
    ProcessorGatewayInterface,
)
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_API_KEY = "test-admin-key"


class RecordingEmail(EmailInterface):
    """Email transport that keeps sent messages in memory."""

    def __init__(self):
        self.sent = []

    async def send(self, to: str, subject: str, body: str) -> bool:
        self.sent.append({"to": to, "subject": subject, "body": body})
        return True

    def subjects(self) -> list[str]:
        return [message["subject"] for message in self.sent]


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


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def email():
    return RecordingEmail()


@pytest.fixture
def processor():
    """Processor gateway double; unconfigured unless a test says otherwise."""
    gateway = AsyncMock(spec=ProcessorGatewayInterface)
    gateway.is_configured = MagicMock(return_value=False)
    return gateway


@pytest.fixture
def license_gateway():
    """License gateway double returning successful responses."""
    gateway = AsyncMock(spec=LicenseGatewayInterface)
    gateway.is_configured = MagicMock(return_value=True)
    gateway.create_license.return_value = License(
        serial_key="PRO-TEST-0001",
        status="active",
        download_url="https://example.com/download/plugin.zip",
    )
    gateway.update_license.return_value = LicenseUpdateResult(
        license_key="PRO-TEST-0001", status="active", expires_at="2024-02-15"
    )
    gateway.addon_subscription.return_value = {"success": True}
    gateway.validate_license.return_value = LicenseStatus.ACTIVE
    return gateway


@pytest.fixture
def services(processor, license_gateway, email):
    """Fully wired service graph over the gateway doubles."""
    return build_services(
        processor=processor, license_gateway=license_gateway, email=email
    )


@pytest_asyncio.fixture(scope="function")
async def client(test_db: AsyncSession, services, monkeypatch):
    """Create a test client authenticated with the admin API key."""
    monkeypatch.setattr(settings, "admin_api_key", TEST_API_KEY)

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_services] = lambda: services

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            headers={"X-API-Key": TEST_API_KEY},
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_order():
    """Build a paid order with one monthly subscription item."""

    def _make_order(order_id: int = 1001, **item_overrides) -> Order:
        item = {
            "id": 1,
            "product_id": 42,
            "name": "Route Planner Pro",
            "is_subscription": True,
            "subscription_price": Decimal("20.00"),
            "billing_period": BillingPeriod.MONTH,
            "billing_interval": 1,
            "trial_days": 0,
            "plugin_slug": "route-planner",
            "license_type": "basic",
            "staff_limit": 5,
        }
        item.update(item_overrides)
        return Order(
            id=order_id,
            status=OrderStatus.PROCESSING,
            user_id=7,
            currency="GBP",
            customer_email="jo@example.com",
            customer_name="Jo Bloggs",
            line_items=[OrderLineItem(**item)],
        )

    return _make_order


@pytest_asyncio.fixture
async def create_subscription():
    """Insert a subscription row directly, bypassing the lifecycle engine."""
    repo = SubscriptionRepository()
    counter = {"item": 0}

    async def _create(**overrides):
        counter["item"] += 1
        data = {
            "order_id": 2000 + counter["item"],
            "order_item_id": counter["item"],
            "user_id": 7,
            "product_id": 42,
            "product_name": "Route Planner Pro",
            "customer_email": "jo@example.com",
            "customer_name": "Jo Bloggs",
            "billing_period": BillingPeriod.MONTH,
            "billing_interval": 1,
            "amount": Decimal("20.00"),
            "currency": "GBP",
            "status": SubscriptionStatus.ACTIVE,
        }
        data.update(overrides)
        return await repo.create(SubscriptionCreateModel(**data))

    return _create
