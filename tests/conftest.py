"""Shared test fixtures and configuration."""

import os
import pytest
from datetime import datetime, timedelta
from typing import Dict, Optional, Union
from unittest.mock import MagicMock

# Set up test environment variables before importing modules
os.environ.setdefault("STRIPE_API_KEY", "sk_test_dummy_key_for_testing")
os.environ.setdefault("API_KEY", "test_api_key_12345")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RECONCILIATION_SCHEDULE_ENABLED", "false")

from order_reconciler.database import (
    Base,
    Order,
    OrderRepository,
    OrderStatus,
    create_async_engine,
    get_async_session_factory,
    utcnow,
)
from order_reconciler.reconciliation import (
    ProviderClientBase,
    ProviderError,
    ProviderTransactionStatus,
)


@pytest.fixture(autouse=True)
def clean_reconciliation_env(monkeypatch):
    """Keep per-run settings at their defaults unless a test sets them."""
    for name in ("RECONCILIATION_DAYS", "RECONCILIATION_LIMIT", "RECONCILIATION_LOGGING"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        database_url="sqlite+aiosqlite:///:memory:",
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test database."""
    return get_async_session_factory(db_engine)


@pytest.fixture
async def db_session(session_factory):
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session


async def create_order(
    session_factory,
    provider_transaction_id: Optional[str] = None,
    status: str = OrderStatus.PENDING.value,
    payment_method: str = "stripe",
    created_at: Optional[datetime] = None,
    total: int = 1000,
) -> int:
    """Insert and commit an order, returning its ID."""
    async with session_factory() as session:
        repo = OrderRepository(session)
        order = await repo.create(
            payment_method=payment_method,
            total=total,
            status=status,
            provider_transaction_id=provider_transaction_id,
            created_at=created_at or utcnow() - timedelta(minutes=5),
        )
        await session.commit()
        return order.id


async def load_order(session_factory, order_id: int) -> Order:
    """Read an order back through a fresh session."""
    async with session_factory() as session:
        return await OrderRepository(session).get_by_id(order_id)


async def load_notes(session_factory, order_id: int):
    async with session_factory() as session:
        return await OrderRepository(session).list_notes(order_id)


@pytest.fixture
def make_provider_client():
    """Build a mock provider client answering from a reference -> status map.

    A value that is an exception is raised instead of returned.
    """
    def _make(statuses: Optional[Dict[str, Union[str, Exception]]] = None) -> MagicMock:
        statuses = statuses or {}
        client = MagicMock(spec=ProviderClientBase)
        client.payment_method = "stripe"
        client.provider_name = "Stripe"

        def lookup(reference: str) -> ProviderTransactionStatus:
            if reference not in statuses:
                raise ProviderError(f"No such payment_intent: '{reference}'")
            result = statuses[reference]
            if isinstance(result, Exception):
                raise result
            return ProviderTransactionStatus(reference=reference, status=result)

        client.get_transaction_status.side_effect = lookup
        return client

    return _make


@pytest.fixture
def mock_stripe_payment_intent():
    """Create a mock succeeded Stripe PaymentIntent."""
    mock_pi = MagicMock()
    mock_pi.id = "pi_1234567890abcdefghijklmno"
    mock_pi.status = "succeeded"
    mock_pi.amount = 1000
    mock_pi.currency = "usd"
    mock_pi.to_dict.return_value = {
        "id": "pi_1234567890abcdefghijklmno",
        "status": "succeeded",
        "amount": 1000,
        "currency": "usd",
        "client_secret": "pi_xxx_secret_xxx",
        "charges": {"card": {"last4": "4242"}, "count": 1},
        "metadata": {}
    }
    return mock_pi


@pytest.fixture
def auth_headers():
    """Return headers with authentication."""
    return {"Authorization": "Bearer test_api_key_12345"}
