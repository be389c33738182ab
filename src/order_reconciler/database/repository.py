"""Repository layer for order persistence operations."""

import logging
from datetime import datetime
from typing import Optional, List, Sequence

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    Order,
    OrderNote,
    OrderStatus,
    utcnow,
)

logger = logging.getLogger(__name__)


class OrderRepository:
    """Repository for Order reads and payment state transitions."""

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: AsyncSession instance for database operations.
        """
        self.session = session

    async def create(
        self,
        payment_method: str,
        total: int = 0,
        currency: str = "USD",
        status: str = OrderStatus.PENDING.value,
        provider_transaction_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Order:
        """Create a new order record.

        Args:
            payment_method: Payment method identifier (e.g. "stripe").
            total: Order total in minor units.
            currency: Three-letter currency code.
            status: Initial order status.
            provider_transaction_id: Optional provider transaction reference.
            created_at: Optional creation time, defaults to now.

        Returns:
            Created Order instance.
        """
        order = Order(
            payment_method=payment_method,
            total=total,
            currency=currency.upper(),
            status=status,
            provider_transaction_id=provider_transaction_id,
        )
        if created_at is not None:
            order.created_at = created_at
            order.updated_at = created_at

        self.session.add(order)
        await self.session.flush()

        logger.info(f"Created order {order.id} with status {status}")
        return order

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """Get an order by its ID.

        Args:
            order_id: Order ID.

        Returns:
            Order instance if found, None otherwise.
        """
        result = await self.session.execute(
            select(Order).where(Order.id == order_id)
        )
        return result.scalar_one_or_none()

    async def find(
        self,
        statuses: Sequence[str],
        payment_method: str,
        created_after: datetime,
        limit: int = 100,
    ) -> List[Order]:
        """Find orders by status, payment method and recency.

        Results are ordered most recent first.

        Args:
            statuses: Order statuses to include.
            payment_method: Payment method identifier to match.
            created_after: Only orders created strictly after this time.
            limit: Maximum number of results.

        Returns:
            List of Order instances.
        """
        result = await self.session.execute(
            select(Order)
            .where(
                and_(
                    Order.status.in_(list(statuses)),
                    Order.payment_method == payment_method,
                    Order.created_at > created_after,
                )
            )
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def complete_payment(
        self,
        order: Order,
        provider_transaction_id: str,
    ) -> bool:
        """Mark an order's payment as complete.

        Only orders in a payable status transition. Completing an order that
        is already paid, or one that was refunded, is a no-op.

        Args:
            order: Order instance to update.
            provider_transaction_id: Provider reference for the payment.

        Returns:
            True if the order transitioned, False otherwise.
        """
        if not order.is_payable:
            logger.debug(f"Order {order.id} is {order.status}, not completing payment")
            return False

        previous_status = order.status
        now = utcnow()
        order.status = OrderStatus.PAID.value
        order.provider_transaction_id = provider_transaction_id
        order.paid_at = now
        order.updated_at = now

        await self.session.flush()
        logger.info(f"Updated order {order.id} status from {previous_status} to {order.status}")
        return True

    async def add_note(self, order: Order, text: str) -> OrderNote:
        """Append an audit note to an order.

        Args:
            order: Order the note belongs to.
            text: Note text.

        Returns:
            Created OrderNote instance.
        """
        note = OrderNote(order_id=order.id, note=text)
        self.session.add(note)
        await self.session.flush()

        logger.debug(f"Added note to order {order.id}: {text}")
        return note

    async def list_notes(self, order_id: int) -> List[OrderNote]:
        """List the audit notes for an order, oldest first."""
        result = await self.session.execute(
            select(OrderNote)
            .where(OrderNote.order_id == order_id)
            .order_by(OrderNote.id)
        )
        return list(result.scalars().all())
