"""SQLAlchemy models for order persistence."""

import enum
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    ForeignKey,
    Text,
    Index,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class OrderStatus(str, enum.Enum):
    """Order statuses known to the reconciler.

    The host owns the full set; these are the values the reconciler
    reads or writes.
    """
    PENDING = "pending"
    ON_HOLD = "on-hold"
    PROCESSING = "processing"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


# Statuses an order may be in while still awaiting payment confirmation
UNPAID_STATUSES = (OrderStatus.PENDING.value, OrderStatus.ON_HOLD.value)

# Statuses that mean payment has already been completed
COMPLETED_STATUSES = (OrderStatus.PAID.value, OrderStatus.PROCESSING.value)

# Statuses from which an order may still move to paid. Refunded orders never do.
PAYABLE_STATUSES = (
    OrderStatus.PENDING.value,
    OrderStatus.ON_HOLD.value,
    OrderStatus.FAILED.value,
    OrderStatus.CANCELLED.value,
)


class Order(Base):
    """Order model holding local payment state."""
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=OrderStatus.PENDING.value)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # Set once a payment attempt has been initiated with the provider
    provider_transaction_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    notes: Mapped[List["OrderNote"]] = relationship(
        "OrderNote",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderNote.id",
    )

    __table_args__ = (
        Index("ix_orders_status", "status"),
        Index("ix_orders_created_at", "created_at"),
        Index("ix_orders_payment_method", "payment_method"),
    )

    @property
    def is_paid(self) -> bool:
        """Whether payment for this order has already been completed."""
        return self.status in COMPLETED_STATUSES

    @property
    def is_payable(self) -> bool:
        """Whether payment completion may move this order to paid."""
        return self.status in PAYABLE_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        """Convert order to dictionary representation."""
        return {
            "id": self.id,
            "status": self.status,
            "payment_method": self.payment_method,
            "total": self.total,
            "currency": self.currency,
            "provider_transaction_id": self.provider_transaction_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }


class OrderNote(Base):
    """Append-only audit note attached to an order."""
    __tablename__ = "order_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    note: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    order: Mapped["Order"] = relationship("Order", back_populates="notes")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "note": self.note,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
