"""Tests for database models, repository and session management."""

import os
import pytest
from datetime import timedelta
from unittest.mock import patch

from order_reconciler.database import (
    DatabaseManager,
    Order,
    OrderRepository,
    OrderStatus,
    get_database_url,
    utcnow,
)


class TestDatabaseUrl:
    """Tests for database URL resolution."""

    def test_postgresql_url_converted(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgresql://u:p@db/orders"}):
            assert get_database_url() == "postgresql+asyncpg://u:p@db/orders"

    def test_postgres_url_converted(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgres://u:p@db/orders"}):
            assert get_database_url() == "postgresql+asyncpg://u:p@db/orders"

    def test_default_sqlite(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        assert get_database_url() == "sqlite+aiosqlite:///./orders.db"


class TestOrderRepository:
    """Tests for the OrderRepository."""

    async def test_create_and_get(self, db_session):
        repo = OrderRepository(db_session)
        order = await repo.create(
            payment_method="stripe",
            total=2500,
            currency="eur",
            provider_transaction_id="pi_abc",
        )

        fetched = await repo.get_by_id(order.id)
        assert fetched is not None
        assert fetched.currency == "EUR"
        assert fetched.status == OrderStatus.PENDING.value
        assert fetched.provider_transaction_id == "pi_abc"
        assert fetched.is_paid is False

    async def test_complete_payment_skips_refunded(self, db_session):
        repo = OrderRepository(db_session)
        order = await repo.create("stripe", status=OrderStatus.REFUNDED.value)

        assert await repo.complete_payment(order, "pi_r") is False
        assert order.status == OrderStatus.REFUNDED.value
        assert order.paid_at is None

    async def test_get_missing(self, db_session):
        assert await OrderRepository(db_session).get_by_id(12345) is None

    async def test_find_orders_most_recent_first(self, db_session):
        repo = OrderRepository(db_session)
        now = utcnow()
        older = await repo.create("stripe", created_at=now - timedelta(hours=5))
        newer = await repo.create("stripe", created_at=now - timedelta(hours=1))
        await repo.create("stripe", status=OrderStatus.PAID.value, created_at=now)

        found = await repo.find(
            statuses=[OrderStatus.PENDING.value],
            payment_method="stripe",
            created_after=now - timedelta(days=1),
        )

        assert [o.id for o in found] == [newer.id, older.id]

    async def test_find_created_after_is_exclusive(self, db_session):
        repo = OrderRepository(db_session)
        cutoff = utcnow() - timedelta(days=1)
        await repo.create("stripe", created_at=cutoff)

        found = await repo.find(
            statuses=[OrderStatus.PENDING.value],
            payment_method="stripe",
            created_after=cutoff,
        )
        assert found == []

    async def test_complete_payment(self, db_session):
        repo = OrderRepository(db_session)
        order = await repo.create("stripe", status=OrderStatus.ON_HOLD.value)

        changed = await repo.complete_payment(order, "pi_done")

        assert changed is True
        assert order.status == OrderStatus.PAID.value
        assert order.provider_transaction_id == "pi_done"
        assert order.paid_at is not None

    @pytest.mark.parametrize("status", [OrderStatus.PAID.value, OrderStatus.PROCESSING.value])
    async def test_complete_payment_is_idempotent(self, db_session, status):
        repo = OrderRepository(db_session)
        order = await repo.create("stripe", status=status, provider_transaction_id="pi_first")

        changed = await repo.complete_payment(order, "pi_second")

        assert changed is False
        assert order.status == status
        assert order.provider_transaction_id == "pi_first"

    async def test_notes_append_in_order(self, db_session):
        repo = OrderRepository(db_session)
        order = await repo.create("stripe")

        await repo.add_note(order, "first")
        await repo.add_note(order, "second")

        notes = await repo.list_notes(order.id)
        assert [n.note for n in notes] == ["first", "second"]
        assert notes[0].to_dict()["order_id"] == order.id

    async def test_order_to_dict(self, db_session):
        repo = OrderRepository(db_session)
        order = await repo.create("stripe", total=500)

        data = order.to_dict()
        assert data["id"] == order.id
        assert data["total"] == 500
        assert data["paid_at"] is None


class TestDatabaseManager:
    """Tests for DatabaseManager lifecycle."""

    async def test_session_commits(self):
        manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
        await manager.initialize()
        try:
            async with manager.session() as session:
                order = await OrderRepository(session).create("stripe")
                order_id = order.id

            async with manager.session() as session:
                assert await OrderRepository(session).get_by_id(order_id) is not None
        finally:
            await manager.shutdown()

    async def test_session_rolls_back_on_error(self):
        manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
        await manager.initialize()
        try:
            with pytest.raises(RuntimeError):
                async with manager.session() as session:
                    await OrderRepository(session).create("stripe")
                    raise RuntimeError("boom")

            async with manager.session() as session:
                found = await OrderRepository(session).find(
                    statuses=[OrderStatus.PENDING.value],
                    payment_method="stripe",
                    created_after=utcnow() - timedelta(days=1),
                )
                assert found == []
        finally:
            await manager.shutdown()

    def test_uninitialized_session_factory(self):
        manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
        with pytest.raises(RuntimeError):
            manager.session_factory
